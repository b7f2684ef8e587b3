"""Logging context, request correlation and health checks."""

from .logging_config import (
    JSONFormatter,
    LogContextFilter,
    configure_logging,
    get_logger,
    get_request_id,
)
from .middleware import RequestIDMiddleware

__all__ = [
    "JSONFormatter",
    "LogContextFilter",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "RequestIDMiddleware",
]
