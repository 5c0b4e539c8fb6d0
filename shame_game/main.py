"""Main entry point for the Shame Game API server"""
import logging
import os

import uvicorn

from shame_game.config import validate_config, LOG_LEVEL

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Main application entry point"""
    logger.info("Validating configuration...")
    validate_config()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))

    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(
        "shame_game.api.server:app",
        host=host,
        port=port,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
