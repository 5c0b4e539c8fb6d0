"""Sentry configuration and initialization for error tracking."""

import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from shame_game.config import (
    ENABLE_SENTRY,
    SENTRY_DSN,
    SENTRY_ENVIRONMENT,
    SENTRY_TRACES_SAMPLE_RATE,
)
from shame_game.exceptions import ShameGameError

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry SDK when ENABLE_SENTRY and SENTRY_DSN are set.

    Returns:
        True if Sentry was initialized
    """
    if not ENABLE_SENTRY:
        logger.info("Sentry is disabled (ENABLE_SENTRY=false)")
        return False

    if not SENTRY_DSN:
        logger.warning("Sentry DSN not configured - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        release="shame-game@dev",
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        attach_stacktrace=True,
        send_default_pii=False,
        before_send=_before_send,
    )

    logger.info(
        f"Sentry initialized: environment={SENTRY_ENVIRONMENT}, "
        f"traces_sample_rate={SENTRY_TRACES_SAMPLE_RATE}"
    )
    return True


def _before_send(event, hint):
    """Drop client errors (4xx); only server-side failures are reported"""
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        status_code = getattr(exc_value, "status_code", 500)
        if isinstance(exc_value, ShameGameError) or exc_type.__name__ == "HTTPException":
            if status_code < 500:
                return None

    return event


def shutdown_sentry() -> None:
    """Flush pending events before shutdown"""
    if sentry_sdk.get_client().is_active():
        logger.info("Flushing Sentry events before shutdown...")
        sentry_sdk.flush(timeout=2.0)
