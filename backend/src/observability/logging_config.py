"""Structured JSON logging configuration.

Every log line is correlated with the request that caused it and, where the
request concerns a tenant, with that tenant. Telemetry payloads must never
reach the operational log: extras named like payload fields are redacted
before formatting.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)

# Extras with these names are replaced before they are written anywhere
REDACTED_FIELDS = frozenset({"value", "payload", "plaintext", "ciphertext", "master_key"})
REDACTED = "[redacted]"

# Attributes every LogRecord carries; anything else was passed via extra=
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
}


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Current request ID, or "no-request-id" outside a request (sweeper thread, Celery tasks)."""
    return request_id_var.get() or "no-request-id"


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_tenant_id(tenant_id: Optional[str]) -> None:
    tenant_id_var.set(tenant_id)


class LogContextFilter(logging.Filter):
    """Attach request_id and tenant_id, and redact payload extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        if getattr(record, "tenant_id", None) is None and tenant_id_var.get() is not None:
            record.tenant_id = tenant_id_var.get()
        for field in REDACTED_FIELDS:
            if field in record.__dict__:
                setattr(record, field, REDACTED)
        return True


def _json_safe(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    return str(value)


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON document per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", "no-request-id"),
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            log_data[key] = REDACTED if key in REDACTED_FIELDS else _json_safe(value)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise use simple format
    """
    log_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(request_id)s - %(name)s.%(funcName)s - %(message)s'
        ))
    handler.addFilter(LogContextFilter())
    root_logger.addHandler(handler)

    # Statement logging would print cached values
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
