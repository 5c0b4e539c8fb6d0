"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shame_game.api.routes import router
from shame_game.api.metrics_routes import router as metrics_router
from shame_game.api.middleware import setup_cors, setup_metrics, setup_rate_limiting
from shame_game.config import LOG_LEVEL
from shame_game.exceptions import ShameGameError
from shame_game.observability.metrics import errors_total
from shame_game.observability.sentry_config import init_sentry, shutdown_sentry
from shame_game.services.container import get_container, init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    init_sentry()

    try:
        container = get_container()
    except RuntimeError:
        container = init_container()

    await container.store.open()
    logger.info(f"Storage ready: {container.store.__class__.__name__}")

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    await container.store.close()
    shutdown_sentry()
    logger.info("Storage closed")


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Shame Game API",
        description="REST API for the social wake-up accountability game",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_metrics(app)

    # Include routes
    app.include_router(router)
    app.include_router(metrics_router)

    @app.exception_handler(ShameGameError)
    async def shame_game_exception_handler(request: Request, exc: ShameGameError):
        errors_total.labels(error_type=exc.__class__.__name__, component="api").inc()
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        errors_total.labels(error_type=exc.__class__.__name__, component="api").inc()
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
