"""
Logging setup: console output plus JSONL error and structured logs.

Records can carry forwarder fields through `extra=`: `component`,
`operation`, `request_path`, `client`, `context_data` and `http_details`.
The console shows them as a suffix after the message. The structured JSONL
log only receives records that carry at least one of them, and the error
JSONL log receives everything at ERROR and above.
"""

import json
import logging
import os
import re
import sys
import traceback
from datetime import UTC, datetime
from functools import lru_cache
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

from forwarder.core.settings import get_settings

REDACTED = "<redacted>"
FORWARDER_FIELDS = (
    "component",
    "operation",
    "request_path",
    "client",
    "context_data",
    "http_details",
)
_ERROR_FIELDS = ("error_type", "error_message")
_RESERVED_ATTRS = (
    set(logging.makeLogRecord({}).__dict__)
    | {"message", "asctime"}
    | set(FORWARDER_FIELDS)
    | set(_ERROR_FIELDS)
)

# Header, setting and payload keys whose values never reach a log line
_SECRET_MARKERS = ("authorization", "cookie", "api-key", "api_key", "apikey", "token", "secret")
_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[a-z0-9\-._~+/]+=*")
_COOKIE_PATTERN = re.compile(r"(?i)(cookie['\"]?\s*[:=]\s*['\"])([^'\"]+)(['\"])")


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def redact(value: Any) -> Any:
    """Mask credentials in request headers, analytics payloads and free text."""
    if isinstance(value, dict):
        return {
            str(key): REDACTED if _is_secret(str(key)) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item) for item in value)
    if isinstance(value, str):
        value = _BEARER_PATTERN.sub(f"Bearer {REDACTED}", value)
        return _COOKIE_PATTERN.sub(rf"\g<1>{REDACTED}\g<3>", value)
    return value


def _extra_attrs(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


def _context(record: logging.LogRecord) -> Any:
    """context_data with any ad-hoc `extra=` attributes folded in."""
    context = getattr(record, "context_data", None)
    extras = _extra_attrs(record)
    if not extras:
        return context
    if context is None:
        return extras
    if isinstance(context, dict):
        return {**extras, **context}
    return {"context_data": context, **extras}


def _error_fields(record: logging.LogRecord, message: str) -> dict[str, Any]:
    exc_type, exc_value, exc_tb = record.exc_info or (None, None, None)
    error_type = getattr(record, "error_type", None)
    error_message = getattr(record, "error_message", None)
    fields: dict[str, Any] = {
        "error_type": error_type or (exc_type.__name__ if exc_type else "LogError"),
        "error_message": error_message or (str(exc_value) if exc_value else message),
    }
    if exc_value is not None:
        fields["stack_trace"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return fields


def record_payload(record: logging.LogRecord, *, include_error: bool = False) -> dict[str, Any]:
    """
    Build the JSON object written for one log record.

    Args:
        record: The record being emitted.
        include_error: Add error type, message and stack trace fields.

    Returns:
        Redacted payload without empty fields.
    """
    message = redact(record.getMessage())
    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "component": getattr(record, "component", None) or record.name,
        "operation": getattr(record, "operation", None),
        "request_path": getattr(record, "request_path", None),
        "client": getattr(record, "client", None),
        "message": message,
        "context_data": redact(_context(record)),
        "http_details": redact(getattr(record, "http_details", None)),
        "source": f"{record.filename}:{record.lineno}",
        "function": record.funcName,
        "process": record.process,
    }
    if include_error:
        payload.update(_error_fields(record, message))
    return {key: value for key, value in payload.items() if value is not None}


class JsonLinesFormatter(logging.Formatter):
    def __init__(self, *, include_error: bool = False):
        super().__init__()
        self.include_error = include_error

    def format(self, record: logging.LogRecord) -> str:
        payload = record_payload(record, include_error=self.include_error)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain console format with forwarder fields appended after ` | `."""

    _LABELS = (
        ("component", "component"),
        ("operation", "operation"),
        ("request_path", "path"),
        ("client", "client"),
    )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        parts = []
        for attr, label in self._LABELS:
            value = getattr(record, attr, None)
            if value:
                parts.append(f"{label}={value}")
        context = getattr(record, "context_data", None)
        if context is not None:
            parts.append("context=" + json.dumps(redact(context), ensure_ascii=False, default=str))
        if not parts:
            return line
        return f"{line} | {' '.join(parts)}"


class ForwarderFieldsFilter(logging.Filter):
    """Let through records that carry forwarder fields or other extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        if any(getattr(record, field, None) is not None for field in FORWARDER_FIELDS):
            return True
        return bool(_extra_attrs(record))


def _log_file_prefix(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9._-]+", "_", name.strip().lower())
    return cleaned.strip("._-") or "forwarder"


def _rotated_name(default_name: str) -> str:
    # forwarder_errors_1.jsonl.20250101_000000 -> forwarder_errors_1_20250101_000000.jsonl
    stem, marker, stamp = default_name.partition(".jsonl.")
    if not marker:
        return default_name
    return f"{stem}_{stamp}.jsonl"


def _jsonl_handler(directory: Path, prefix: str, kind: str, formatter: logging.Formatter):
    directory.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(directory / f"{prefix}_{kind}_{os.getpid()}.jsonl"),
        when="D",
        interval=1,
        backupCount=0,
        encoding="utf-8",
        delay=True,
        utc=True,
    )
    handler.setFormatter(formatter)
    handler.suffix = "%Y%m%d_%H%M%S"
    handler.namer = _rotated_name
    return handler


@lru_cache
def setup_logging(name: str | None = None, level: str | None = None) -> logging.Logger:
    """
    Configure root logging once per process.

    Args:
        name: Logger name (defaults to app name from settings)
        level: Log level (defaults to settings.log_level)

    Returns:
        The named application logger
    """
    settings = get_settings()
    logger_name = name or settings.app_name
    log_level = getattr(logging, (level or settings.log_level).upper())
    prefix = _log_file_prefix(logger_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        ConsoleFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    error_handler = _jsonl_handler(
        settings.logs_dir / "errors", prefix, "errors", JsonLinesFormatter(include_error=True)
    )
    error_handler.setLevel(logging.ERROR)
    root_logger.addHandler(error_handler)

    structured_handler = _jsonl_handler(
        settings.logs_dir / "structured", prefix, "structured", JsonLinesFormatter()
    )
    structured_handler.addFilter(ForwarderFieldsFilter())
    root_logger.addHandler(structured_handler)

    app_logger = logging.getLogger(logger_name)
    app_logger.setLevel(log_level)
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
