"""Logging configuration applied once at application start."""
import logging
import logging.config
from typing import Any

LOGGING_CONFIG_BASE: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "therapy_modules": {
            "handlers": ["console"],
            "propagate": False,
        },
        "uvicorn": {
            "handlers": ["console"],
            "propagate": False,
        },
    },
}


def configure_logging(level: str = "INFO") -> None:
    """Apply the dictConfig with every configured logger set to ``level``."""
    level = level.upper()
    config = {
        **LOGGING_CONFIG_BASE,
        "handlers": {
            name: {**handler, "level": level}
            for name, handler in LOGGING_CONFIG_BASE["handlers"].items()
        },
        "loggers": {
            name: {**logger_cfg, "level": level}
            for name, logger_cfg in LOGGING_CONFIG_BASE["loggers"].items()
        },
    }
    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured at %s", level)
