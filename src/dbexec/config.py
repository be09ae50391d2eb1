"""Configuration management for dbexec."""

import os
import logging
import sys
from dataclasses import dataclass
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Runtime configuration with validation."""
    database_url: str = ""
    query_definitions_path: str = "queries.yaml"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        errors = []

        if not self.query_definitions_path:
            errors.append("QUERY_DEFINITIONS_PATH cannot be empty")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        if errors:
            error_message = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_message)

    def require_database_url(self) -> str:
        """Return the connection string, failing if it is not configured."""
        if not self.database_url:
            raise ValueError("DATABASE_URL is required")
        return self.database_url


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Loads from .env file if present, then from environment variables.

    Returns:
        Config object with validated settings
    """
    load_dotenv()

    try:
        config = Config(
            database_url=os.getenv("DATABASE_URL", ""),
            query_definitions_path=os.getenv("QUERY_DEFINITIONS_PATH") or "queries.yaml",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
        logger.debug("Configuration loaded successfully")
        return config
    except ValueError as error:
        logger.error(f"Failed to load configuration: {error}")
        raise


def setup_logging(log_level: str = "INFO"):
    """
    Setup logging configuration.

    Logs go to stderr; stdout is reserved for results and the MCP protocol.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )
