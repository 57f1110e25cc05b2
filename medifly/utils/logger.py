"""
Structured logging for the chat assistant.
Every log line is an event name plus keyword context, tagged with the chat session id.
"""

import logging
import json
from typing import Any
from contextvars import ContextVar

# Chat session id for the current task (propagates into asyncio tasks)
session_id_ctx: ContextVar[str | None] = ContextVar("session_id", default=None)


def _collect_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    session_id = session_id_ctx.get()
    if session_id:
        fields["session_id"] = session_id
    fields.update(getattr(record, "extra_fields", {}) or {})
    return fields


class StructuredFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line for log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        log_data.update(_collect_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class KeyValueFormatter(logging.Formatter):
    """
    Human-readable console formatter: standard prefix followed by key=value pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _collect_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value!r}" for key, value in fields.items())
        return line


class StructuredLogger:
    """
    Wrapper around a standard logger taking context as keyword arguments.

    Example:
        logger.info("search_completed", query="cardiology", results=4)
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(
        self, level: int, event: str, exc_info: bool = False, **extra_fields: Any
    ) -> None:
        self.logger.log(
            level, event, extra={"extra_fields": extra_fields}, exc_info=exc_info
        )

    def debug(self, event: str, **extra_fields: Any) -> None:
        self._log(logging.DEBUG, event, **extra_fields)

    def info(self, event: str, **extra_fields: Any) -> None:
        self._log(logging.INFO, event, **extra_fields)

    def warning(self, event: str, **extra_fields: Any) -> None:
        self._log(logging.WARNING, event, **extra_fields)

    def error(self, event: str, exc_info: bool = False, **extra_fields: Any) -> None:
        """Pass exc_info=True inside an except block to attach the traceback."""
        self._log(logging.ERROR, event, exc_info=exc_info, **extra_fields)


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a module (pass __name__)."""
    return StructuredLogger(name)


def set_session_id(session_id: str | None) -> None:
    """Tag every subsequent log line of this context with a chat session id."""
    session_id_ctx.set(session_id)


def get_session_id() -> str | None:
    return session_id_ctx.get()


def configure_logging(
    level: str = "INFO", use_structured: bool = True
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_structured: If True, use JSON logging, otherwise key=value lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)

    if use_structured:
        formatter = StructuredFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = KeyValueFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
