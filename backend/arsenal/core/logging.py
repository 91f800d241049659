"""
Logging configuration.

WHAT: Configures the root logger with either a JSON formatter
(python-json-logger) or a plain text formatter, and stamps every record
with the current request id.

WHY: Escalation side effects (notifications, websocket pushes) are
best-effort and only ever surface in logs. Correlating those log lines
with the API request that triggered them needs the request id on every
record, including records emitted from services and DAOs.

HOW: RequestIdFilter reads the ContextVar populated by
RequestContextMiddleware. Outside a request (scheduler jobs) it
falls back to "-".
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

from arsenal.middleware.request_context import get_request_context


class RequestIdFilter(logging.Filter):
    """Attach request_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_request_context()
        record.request_id = ctx.request_id if ctx else "-"
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with timestamp, level and request id fields.

    Values under keys that look like credentials are redacted.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["request_id"] = getattr(record, "request_id", "-")

        for key, value in list(log_record.items()):
            if isinstance(value, str) and (
                "password" in key.lower() or "token" in key.lower() or "api_key" in key.lower()
            ):
                log_record[key] = "***REDACTED***"


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure root logging for the application.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit JSON lines instead of plain text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
