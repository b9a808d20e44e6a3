"""
Logging configuration for the Quatrelati services.

Modules keep using ``logging.getLogger(__name__)``; this module only wires
handlers and formats once at startup. Every record carries the service
name so the API and the landing page can share a log sink.
"""

import logging
import logging.config

from quatrelati.config import settings

SERVICE_NAME = "quatrelati-api"

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(service)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "service": "%(service)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "module": "%(filename)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}


class ServiceNameFilter(logging.Filter):
    """Stamp the service name on every record."""

    def __init__(self, service: str = SERVICE_NAME):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self.service
        return True


def get_logging_config(level: str = None, log_format: str = None, service: str = SERVICE_NAME) -> dict:
    level = (level or settings.LOG_LEVEL).upper()
    # production defaults to JSON lines
    if log_format is None:
        log_format = "json" if settings.is_production else settings.LOG_FORMAT
    fmt = FORMATS.get(log_format, DETAILED_FORMAT)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "service": {"()": ServiceNameFilter, "service": service},
        },
        "formatters": {
            "default": {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["service"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "quatrelati": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
            "botocore": {"level": "WARNING"},
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(level: str = None, log_format: str = None, service: str = SERVICE_NAME) -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(get_logging_config(level, log_format, service))
