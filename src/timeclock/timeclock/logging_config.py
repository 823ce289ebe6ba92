from __future__ import annotations

import logging.config
from typing import Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_logging_config(level: Union[str, int] = "INFO") -> dict:
    if isinstance(level, str):
        level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            # Third-party libraries stay quiet unless something goes wrong
            "werkzeug": {"level": "WARNING"},
            "mysql.connector": {"level": "WARNING"},
        },
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: Union[str, int] = "INFO") -> None:
    logging.config.dictConfig(build_logging_config(level))
