"""
Logging setup for the CLI.

Logs go to stderr so stdout stays clean for command results.
"""

import logging
from logging.config import dictConfig


def setup_logging(level: str = "INFO") -> None:
    level = level.upper()
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s %(name)s - %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level},
        },
    })
    logging.getLogger(__name__).debug("Logging initialized at level %s", level)
