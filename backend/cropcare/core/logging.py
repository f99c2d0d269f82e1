"""Process-wide logging setup shared by the API and the scheduler worker."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

from cropcare.core.context import get_request_id, get_user_id

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | user=%(user_id)s | %(message)s"

_configured = False


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and caller id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - minimal logic
        record.request_id = get_request_id() or "-"
        record.user_id = get_user_id() or "-"
        return True


def _logging_config(log_level: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "filters": {"request_context": {"()": RequestContextFilter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": log_level,
                "filters": ["request_context"],
            }
        },
        "root": {"handlers": ["console"], "level": log_level},
        "loggers": {
            # SQL echo is noisy at INFO; keep it opt-in.
            "sqlalchemy.engine": {"level": "WARNING"},
            "apscheduler": {"level": "WARNING"},
        },
    }


def configure_logging(*, log_level: str = "INFO") -> None:
    """Configure logging once; later calls are ignored."""
    global _configured

    if _configured:
        return
    dictConfig(_logging_config(log_level.upper()))
    _configured = True
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
