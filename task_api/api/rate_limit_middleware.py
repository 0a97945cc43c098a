"""Rate limiting middleware."""

from fnmatch import fnmatchcase
from http import HTTPStatus
from typing import Optional, Sequence

from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from task_api.api.client_ip import resolve_client_ip
from task_api.models.response import RateLimitErrorResponse
from task_api.services.rate_limit_service import RateLimitService

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def is_excluded(path: str, patterns: Sequence[str]) -> bool:
    """Match a path against glob patterns. ``/x/**`` also matches ``/x``."""
    for pattern in patterns:
        if fnmatchcase(path, pattern):
            return True
        if pattern.endswith("/**") and path == pattern[:-3]:
            return True
    return False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Admit or reject each request using the client's token bucket.

    The service is taken from ``app.state.rate_limit_service`` unless one is
    passed in explicitly.
    """

    def __init__(self, app, service: Optional[RateLimitService] = None):
        super().__init__(app)
        self._service = service

    def _get_service(self, request: Request) -> RateLimitService:
        if self._service is not None:
            return self._service
        return request.app.state.rate_limit_service

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        service = self._get_service(request)
        settings = service.settings
        path = request.url.path

        if not service.enabled or is_excluded(path, settings.rate_limit_excluded_paths_list):
            return await call_next(request)

        client_id = resolve_client_ip(request, settings.rate_limit_trusted_proxies_list)
        request.state.client_ip = client_id
        limit = str(service.capacity)

        if not service.try_consume(client_id):
            body = RateLimitErrorResponse(
                status=status.HTTP_429_TOO_MANY_REQUESTS,
                error=HTTPStatus.TOO_MANY_REQUESTS.phrase,
                message=RATE_LIMIT_MESSAGE,
                path=path,
                limit=service.capacity,
                retry_after=service.period_seconds,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=body.model_dump(mode="json", by_alias=True),
                headers={
                    "X-RateLimit-Limit": limit,
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(service.period_seconds),
                },
            )

        remaining = str(service.available_tokens(client_id))
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = limit
        response.headers["X-RateLimit-Remaining"] = remaining
        return response
