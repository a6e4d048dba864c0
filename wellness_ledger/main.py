"""Main entry point for the wellness ledger API"""
import logging

import uvicorn

from wellness_ledger.config import validate_config, API_HOST, API_PORT, LOG_LEVEL

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration, then serve the API until interrupted"""
    logger.info("Validating configuration...")
    validate_config()

    logger.info(f"Starting API on {API_HOST}:{API_PORT}")
    uvicorn.run("wellness_ledger.api.server:app", host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
