"""
Central logging configuration for ics_availability.

Keeps package loggers at INFO (DEBUG on request) while quieting noisy
third-party loggers, and stamps every record with the request correlation id.
"""

import logging
import os
from typing import Optional

from ics_availability.api.middleware.correlation_id import get_request_id


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


PACKAGE_LOGGERS = [
    "ics_availability",
    "ics_availability.api",
    "ics_availability.calendar",
    "ics_availability.core",
    "ics_availability.domain",
]

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for ics_availability.

    Args:
        debug_mode: Whether to enable debug logging for package modules
        force_debug: Override debug mode setting (None to use env var detection)
        log_level: Configured level name used for root and package loggers when
            debug is off (INFO if None or unknown)

    Environment Variables:
        ICS_AVAILABILITY_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ICS_AVAILABILITY_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ICS_AVAILABILITY_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ICS_AVAILABILITY_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    base_level = logging.INFO
    if log_level and log_level.upper() in VALID_LEVELS:
        base_level = getattr(logging, log_level.upper())

    root_level = logging.DEBUG if final_debug else base_level
    if env_log_level in VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()

    # Keep the colourised handler installed by _init_logging when present.
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s"
            )
        )
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    logger_config = dict(NOISY_LOGGERS)
    package_level = logging.DEBUG if final_debug else base_level
    for module in PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for ics_availability modules")
    else:
        root_logger.info("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["ics_availability", "aiohttp.access", "httpx", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
