"""Models package exports."""

from task_api.models.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RefreshTokenResponse,
    RegisterRequest,
    RevokedCount,
    SessionSummary,
    UserSummary,
)
from task_api.models.response import ErrorResponse, RateLimitErrorResponse
from task_api.models.user import AuthContext, ClientMeta, RefreshToken, User

__all__ = [
    "AuthContext",
    "AuthResponse",
    "ChangePasswordRequest",
    "ClientMeta",
    "ErrorResponse",
    "LoginRequest",
    "RateLimitErrorResponse",
    "RefreshRequest",
    "RefreshToken",
    "RefreshTokenResponse",
    "RegisterRequest",
    "RevokedCount",
    "SessionSummary",
    "User",
    "UserSummary",
]
