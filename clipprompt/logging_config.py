import copy
import logging
import logging.config
from typing import Dict, Optional

from clipprompt.config import settings


LOGGING_CONFIG: Dict = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "loggers": {
        "clipprompt": {"level": "INFO"},
        "httpx": {"level": "WARNING"},
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
}


def configure_logging(level: Optional[str] = None) -> None:
    """Apply LOGGING_CONFIG with the ``clipprompt`` logger at ``level`` (LOG_LEVEL by default)."""
    config = copy.deepcopy(LOGGING_CONFIG)
    config["loggers"]["clipprompt"]["level"] = (level or settings.log_level).upper()
    logging.config.dictConfig(config)
