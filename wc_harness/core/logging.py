"""Structured logging configuration with per-case ID tracking."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Settings, get_settings


# Context variable for the conformance case currently running
case_id_var: ContextVar[Optional[str]] = ContextVar("case_id", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        case_id = case_id_var.get()
        if case_id:
            log_data["case_id"] = case_id

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def format(self, record: logging.LogRecord) -> str:
        case_id = case_id_var.get()
        cid = f"[{case_id}] " if case_id else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} {record.levelname:8} {cid}{record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class SensitiveDataFilter(logging.Filter):
    """Redact credentials embedded in logged command documents."""

    SENSITIVE_KEYS = {"pwd", "password", "secret", "token"}

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        lowered = message.lower()
        if any(key in lowered for key in self.SENSITIVE_KEYS):
            for key in self.SENSITIVE_KEYS:
                message = self._redact_value(message, key)
            record.msg = message
            record.args = None
        return True

    def _redact_value(self, text: str, key: str) -> str:
        """Redact values after sensitive keys, leaving masked values alone."""
        masked = r"(?!['\"]?\[REDACTED\])"
        patterns = [
            rf"({key}\s*[=:]\s*){masked}[^\s,}}\]]+",
            rf"('{key}'\s*:\s*){masked}[^\s,}}\]]+",
            rf'("{key}"\s*:\s*){masked}[^\s,}}\]]+',
        ]
        for pattern in patterns:
            text = re.sub(pattern, r"\1[REDACTED]", text, flags=re.IGNORECASE)
        return text


def redact_command(document: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a command document with credential fields masked."""
    return {
        key: "[REDACTED]" if key.lower() in SensitiveDataFilter.SENSITIVE_KEYS else value
        for key, value in document.items()
    }


def setup_logging(settings: Settings | None = None) -> None:
    """Configure harness logging."""
    settings = settings or get_settings()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, settings.log_level))

    if settings.log_format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter())

    handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(handler)

    # pymongo logs every heartbeat at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the wc_harness prefix."""
    return logging.getLogger(f"wc_harness.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that includes extra context."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        extra = kwargs.get("extra", {})
        case_id = case_id_var.get()
        if case_id:
            extra["case_id"] = case_id
        if self.extra:
            extra.update(self.extra)
        kwargs["extra"] = {"extra_fields": extra}
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger adapter that stamps the given context on every record."""
    return LoggerAdapter(get_logger(name), context)
