"""Process-wide logging setup."""

import logging.config
import sys


def configure_logging(level: str = "INFO") -> None:
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": level,
                "propagate": True,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "WARNING",  # INFO echoes SQL
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
