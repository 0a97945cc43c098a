"""API package exports."""

from task_api.api.auth_middleware import AuthenticationMiddleware
from task_api.api.middleware import CorrelationIdMiddleware, RequestTimingMiddleware
from task_api.api.rate_limit_middleware import RateLimitMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "CorrelationIdMiddleware",
    "RateLimitMiddleware",
    "RequestTimingMiddleware",
]
