"""
Logging configuration for yalc.

Two output styles:
- SimpleFormatter: human-readable console output (default for the CLI)
- JsonFormatter: one JSON object per line for tooling and CI logs

Usage:
    from yalc.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("message", extra={"package": "my-lib"})
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import PurePath
from typing import Any

import orjson

# Attributes every LogRecord carries; anything else came in through `extra`.
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)

MAX_LIST_ITEMS = 10


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Make extra fields JSON-safe and bounded.

    Paths become strings, long lists are summarized and nested dicts are
    filtered up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(value, (int, float, bool, str, type(None))):
            filtered[key] = value
        elif isinstance(value, PurePath):
            filtered[key] = value.as_posix()
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = [v.as_posix() if isinstance(v, PurePath) else v for v in value]
            if len(items) <= MAX_LIST_ITEMS:
                filtered[key] = items
            else:
                filtered[key] = f"[list:{len(items)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = str(value)
    return filtered


class JsonFormatter(logging.Formatter):
    """JSON log formatter.

    Output format:
    {"ts":"2024-01-01T00:00:00.000+00:00","level":"INFO","logger":"yalc.commands.add","msg":"..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return orjson.dumps(log_dict, default=str).decode()


class SimpleFormatter(logging.Formatter):
    """Console formatter.

    INFO lines are printed bare; other levels get a level prefix.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        base = message if record.levelno == logging.INFO else f"{record.levelname}: {message}"

        extra = _extra_fields(record)
        if extra:
            filtered = _filter_log_record(extra)
            if filtered:
                extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
                base = f"{base} | {extra_str}"

        if record.exc_info and record.levelno >= logging.DEBUG:
            base = f"{base}\n{self.formatException(record.exc_info)}"

        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter instead of console output.
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Configured Logger instance.
    """
    return logging.getLogger(name)
