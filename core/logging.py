"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Logs are written to stderr: when the MCP server runs over stdio, stdout
carries protocol frames and must not receive log lines.

Usage:
    from core.logging import logger, get_logger

    logger.info("Server started")

    log = get_logger(__name__)
    log.debug("Fetching ticker")

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] bitbank: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True
    )

    logger = logging.getLogger("bitbank")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance named "bitbank.<name>"

    Example:
        # In exchanges/bitbank/api_client.py:
        logger = get_logger(__name__)  # "bitbank.exchanges.bitbank.api_client"
    """
    return logging.getLogger(f"bitbank.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, endpoint: str, attempt: int = None) -> None:
    """
    Log an API request with consistent formatting.

    Example:
        >>> log_api_request("bitbank", "/btc_jpy/ticker", attempt=1)
        [DEBUG] API Request: bitbank /btc_jpy/ticker | Attempt: 1
    """
    if attempt is not None:
        logger.debug(f"API Request: {exchange} {endpoint} | Attempt: {attempt}")
    else:
        logger.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("bitbank", "/btc_jpy/depth", 200, 0.342)
        [DEBUG] API Response: bitbank /btc_jpy/depth | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


logger.debug("Logging system initialized")
