"""
Logging configuration
"""

import logging
import sys
from typing import Dict, Optional

from core.config import Settings, get_settings
from core.exceptions import ConfigurationError

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "pymongo")


def parse_log_filters(filters: Optional[str]) -> Dict[str, int]:
    """
    Parse "name=LEVEL" pairs separated by commas into logger levels.

    Raises:
        ConfigurationError: If an entry is malformed or names an unknown level
    """
    levels: Dict[str, int] = {}
    if not filters:
        return levels

    for entry in filters.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, level_name = entry.partition("=")
        level = logging.getLevelName(level_name.strip().upper())
        if not sep or not name.strip() or not isinstance(level, int):
            raise ConfigurationError(
                f"Invalid log filter: {entry!r}",
                context={"log_filters": filters}
            )
        levels[name.strip()] = level
    return levels


def setup_logging(settings: Optional[Settings] = None):
    """Configure application logging"""
    settings = settings or get_settings()

    # Get log level from settings
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Explicit filters win over the defaults above
    for name, level in parse_log_filters(settings.LOG_FILTERS).items():
        logging.getLogger(name).setLevel(level)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {settings.LOG_LEVEL} level")
