"""Middleware for request processing and observability."""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

SLOW_REQUEST_MS = 1000
VERY_SLOW_REQUEST_MS = 5000


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to every request.

    - Generates UUID4 per request (or uses X-Correlation-Id header if present)
    - Stores in request.state.correlation_id
    - Binds to structlog context for all subsequent logging
    - Adds X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with correlation ID tracking."""
        correlation_id = request.headers.get("X-Correlation-Id") or str(uuid4())
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id

        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Log every request with its duration.

    Requests slower than ``SLOW_REQUEST_MS`` are logged as warnings and
    those slower than ``VERY_SLOW_REQUEST_MS`` as errors.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if duration_ms > VERY_SLOW_REQUEST_MS:
            logger.error("request_very_slow", **fields)
        elif duration_ms > SLOW_REQUEST_MS:
            logger.warning("request_slow", **fields)
        else:
            logger.info("request_completed", **fields)

        return response
