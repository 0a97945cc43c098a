"""Services package exports."""

from task_api.services.auth_service import AuthService, TokenPair
from task_api.services.logging_service import configure_logging, get_logger
from task_api.services.rate_limit_service import RateLimitService
from task_api.services.refresh_token_service import RefreshTokenService
from task_api.services.token_bucket import TokenBucket
from task_api.services.token_service import TokenService
from task_api.services.user_service import UserService

__all__ = [
    "AuthService",
    "RateLimitService",
    "RefreshTokenService",
    "TokenBucket",
    "TokenPair",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
]
