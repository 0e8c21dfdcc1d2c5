"""
Central logging configuration for familycal.

Keeps familycal's own diagnostics while suppressing verbose DEBUG output from
the HTTP and event-loop libraries, which is noisy on a small display device.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Third-party libraries that generate excessive debug logs
_QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "aiohttp.client",
    "aiohttp.internal",
    "asyncio",
    "charset_normalizer",
)


def configure_logging(level: str = "INFO", debug: Optional[bool] = None) -> int:
    """
    Configure the root logger and quiet noisy third-party loggers.

    Args:
        level: Default level name when no environment override is set
        debug: Force debug logging on or off (None to use env var detection)

    Returns:
        The effective root log level

    Environment Variables:
        FAMILYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        FAMILYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("FAMILYCAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("FAMILYCAL_LOG_LEVEL", "").upper()

    final_debug = debug if debug is not None else env_debug

    level_name = level.upper() if level.upper() in _VALID_LEVELS else "INFO"
    root_level = getattr(logging, level_name)
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)
    if final_debug:
        root_level = logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist (pytest and embedding apps bring their own)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("familycal").setLevel(logging.DEBUG if final_debug else root_level)

    if final_debug:
        root_logger.info("Debug logging enabled for familycal modules")
    return root_level
