"""JSON structured logging shared by the API and the relay worker."""
from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from feedback_aggregator.config import settings

# Library loggers and the level they run at outside development.
_LIBRARY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "celery": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
}


def build_formatter(process_role: str) -> JsonFormatter:
    """Formatter stamping every line with the service and process role."""
    return JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger",
        },
        static_fields={
            "service": settings.SERVICE_NAME,
            "env": settings.APP_ENV,
            "role": process_role,
        },
    )


def setup_logging(process_role: str = "api") -> None:
    """Route all records to stdout as JSON; ``process_role`` is ``api`` or ``worker``."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(process_role))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.APP_LOG_LEVEL)

    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)
    if settings.APP_ENV == "development":
        # SQL echo is only useful while developing locally.
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
