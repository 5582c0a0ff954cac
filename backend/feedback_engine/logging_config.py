"""One JSON line per log record, shared by the API and the Celery workers."""
from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from feedback_engine.config import settings

SERVICE_NAME = "guest-feedback-engine"

# Third-party loggers that drown out engine events at INFO.
_LIBRARY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "amqp": logging.WARNING,
    "kombu": logging.WARNING,
    "google": logging.WARNING,
}


def setup_logging(level: str | None = None) -> None:
    """Replace root handlers with a stdout JSON handler.

    Safe to call more than once: the API lifespan and the worker signal both
    call it and the last call wins.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            static_fields={"service": SERVICE_NAME, "env": settings.APP_ENV},
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level or settings.APP_LOG_LEVEL)

    for name, lib_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(lib_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)
