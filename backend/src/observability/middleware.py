"""FastAPI middleware for request correlation.

Binds a request ID, and the tenant ID when the path names one, to the logging
context for the duration of each request, then logs the outcome.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import generate_request_id, get_logger, set_request_id, set_tenant_id

logger = get_logger(__name__)

# Request IDs supplied by clients longer than this are replaced
MAX_REQUEST_ID_LENGTH = 128

TENANT_PATH = re.compile(r"/tenants/([0-9a-fA-F-]{36})(?:/|$)")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Accept or generate X-Request-ID and echo it on the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID")
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = generate_request_id()
        set_request_id(request_id)

        match = TENANT_PATH.search(request.url.path)
        set_tenant_id(match.group(1) if match else None)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} failed: {e}",
                extra={"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)},
                exc_info=True,
            )
            raise

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response
