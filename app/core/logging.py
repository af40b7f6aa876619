from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from app.core.config import settings

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__.keys())

# Correlation fields promoted to top-level keys so cart activity can be
# filtered without digging into "extra".
_CONTEXT_FIELDS = ("request_id", "cart_id", "item_id", "phase")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; cart and request ids sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        message: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        for field in _CONTEXT_FIELDS:
            if field in extra:
                message[field] = extra.pop(field)

        if record.exc_info:
            message["exc_info"] = self.formatException(record.exc_info)
        if extra:
            message["extra"] = extra

        return json.dumps(message, default=str)


def setup_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "json"},
            },
            "root": {"handlers": ["default"], "level": level},
            "loggers": {
                "uvicorn.access": {"handlers": ["default"], "level": level, "propagate": False},
                # Statement echo stays off unless something goes wrong in the driver.
                "sqlalchemy.engine": {"level": logging.WARNING},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def storage_alert(message: str, *, phase: str, **context: Any) -> None:
    """Error-level log for a failed storage phase, tagged for alerting rules."""
    get_logger("app.storage").error(message, extra={"alert": True, "phase": phase, **context})
