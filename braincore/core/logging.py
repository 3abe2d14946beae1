"""
Structured logging with correlation ID support.

Features:
- JSON logs in production, pretty logs in development.
- Context-bound correlation_id so every decision made for one UI action
  can be traced together.
- log_event helper for consistent structured logs with safe truncation.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional
from uuid import uuid4

correlation_id_ctx_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Structured fields copied into JSON output when present on a record
_STRUCTURED_FIELDS = (
    "user_id",
    "plan",
    "feature",
    "event_type",
    "error_code",
)


def get_correlation_id(default: Optional[str] = None) -> Optional[str]:
    """Fetch the current correlation_id from context (if any)."""
    cid = correlation_id_ctx_var.get()
    return cid if cid is not None else default


@contextmanager
def bind_correlation_id(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation_id for the duration of a block (generated if omitted)."""
    cid = correlation_id or str(uuid4())
    token = correlation_id_ctx_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_ctx_var.reset(token)


def _format_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace('+00:00', 'Z')


class CorrelationIdFilter(logging.Filter):
    """Inject correlation_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None)
        cid_part = f" [cid={cid}]" if cid else ""
        ts = _format_timestamp(record)
        return f"{ts} {record.levelname} [braincore]{cid_part} {record.getMessage()}"


def configure_logging(env: str = "development") -> None:
    """Configure structured logging based on environment."""
    logger = logging.getLogger("braincore")
    logger.setLevel(logging.INFO)

    formatter: logging.Formatter
    if env.lower() == "production":
        formatter = JsonFormatter()
    else:
        formatter = PrettyFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    logger.handlers = [handler]
    logger.propagate = True


def _safe_truncate(value, limit: int = 500):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None,
    plan: Optional[str] = None,
    feature: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Structured logging helper with safe truncation and correlation."""

    logger = logging.getLogger("braincore")
    if not logger.handlers:
        # Ensure logging configured in edge cases (tests, library use)
        configure_logging(os.getenv("ENV", "development"))

    payload = {
        "correlation_id": correlation_id or get_correlation_id(),
        "user_id": user_id,
        "plan": plan,
        "feature": feature,
    }
    if event_type:
        payload["event_type"] = event_type
    if error_code:
        payload["error_code"] = error_code
    if extra:
        for k, v in extra.items():
            payload[k] = _safe_truncate(v)

    log_fn = getattr(logger, level, logger.info)
    log_fn(msg, extra=payload)
