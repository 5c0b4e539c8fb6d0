"""API middleware for rate limiting and CORS"""
import logging
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi.middleware.cors import CORSMiddleware

from shame_game.config import CORS_ORIGINS, RATE_LIMIT_DEFAULT, RATE_LIMIT_ENABLED
from shame_game.observability.metrics_middleware import PrometheusMiddleware

logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    enabled=RATE_LIMIT_ENABLED,
)


def setup_cors(app):
    """Configure CORS middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(f"CORS configured for origins: {CORS_ORIGINS}")


def setup_rate_limiting(app):
    """Configure rate limiting"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    if RATE_LIMIT_ENABLED:
        logger.info(f"Rate limiting configured: {RATE_LIMIT_DEFAULT} per IP")
    else:
        logger.warning("Rate limiting disabled (RATE_LIMIT_ENABLED=false)")


def setup_metrics(app):
    """Configure Prometheus request metrics"""
    app.add_middleware(PrometheusMiddleware)
    logger.info("Prometheus request metrics enabled")
