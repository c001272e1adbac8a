"""JSON logging for the helpdesk API.

One JSON object per line on stdout. Structured fields travel in
``extra={"context": {...}}``; inbound message handling binds the session id
once with :func:`session_logger`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

LOGGER_NAMESPACE = "helpdesk"
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # datetimes and enums in context are rendered with str()
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, debug: bool = False) -> None:
    """Replace root handlers with a single JSON stdout handler.

    Without an explicit level: DEBUG for debug deployments, INFO otherwise.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or ("DEBUG" if debug else "INFO")).upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Merges bound fields and a per-call ``context=`` keyword into the record context."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            kwargs["extra"] = {"context": {**self.extra, **(context or {})}}
        return msg, kwargs


def session_logger(logger: logging.Logger, session_id: str) -> LoggerAdapter:
    """Adapter that stamps ``session_id`` on every line."""
    return LoggerAdapter(logger, {"session_id": session_id})
