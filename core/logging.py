"""
Unified Logging Configuration

This module sets up a centralized logging system for the aggregation core.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import get_logger
    logger = get_logger(__name__)

    logger.debug("Quote request payload: {...}")
    logger.info("Loaded 1,204 assets from lifi")
    logger.warning("Dropped 3 assets that failed canonical conversion")
    logger.error("Provider across failed: timeout")

Log Levels (from most to least verbose):
    DEBUG    - Request/response traces, probe iterations
    INFO     - Provider lifecycle, snapshot summaries
    WARNING  - Retries, registry fallbacks, dropped items
    ERROR    - Provider-level failures

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "bridgestats"


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
        >>> logger.info("Aggregator started")
        2024-01-01 12:00:00 [INFO] bridgestats Aggregator started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In providers/lifi/api_client.py:
        logger = get_logger(__name__)  # "bridgestats.providers.lifi.api_client"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, method: str, path: str, params: dict = None) -> None:
    """
    Log an outgoing provider API request with consistent formatting.

    Example:
        >>> log_api_request("lifi", "GET", "/quote", {"fromChain": 1, "toChain": 42161})
        [DEBUG] API Request: lifi GET /quote | Params: {'fromChain': 1, 'toChain': 42161}
    """
    if params:
        logger.debug(f"API Request: {provider} {method} {path} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {method} {path}")


def log_api_response(provider: str, method: str, path: str, status: int, response_time: float = None) -> None:
    """
    Log a provider API response with status and timing information.

    Example:
        >>> log_api_response("lifi", "GET", "/quote", 200, 0.342)
        [DEBUG] API Response: lifi GET /quote | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {method} {path} | Status: {status}{time_str}")


def log_dropped_items(provider: str, operation: str, dropped: int, total: int) -> None:
    """
    Log items removed by the partial-success policy.

    Nothing is logged when no item was dropped.

    Example:
        >>> log_dropped_items("across", "listed_assets", 3, 120)
        [WARNING] across listed_assets: dropped 3/120 item(s) that failed conversion
    """
    if dropped:
        logger.warning(f"{provider} {operation}: dropped {dropped}/{total} item(s) that failed conversion")


logger.debug("Logging system initialized")
