"""FastAPI dependencies for authentication and authorization."""

from typing import Callable

from fastapi import Depends, Request

from task_api.api.client_ip import resolve_client_ip
from task_api.config import get_settings
from task_api.exceptions import AccessDeniedError, AuthenticationError
from task_api.models.user import ROLE_ADMIN, AuthContext, ClientMeta, User
from task_api.services.auth_service import AuthService
from task_api.services.rate_limit_service import RateLimitService


def get_auth_context(request: Request) -> AuthContext:
    """Authentication result set by AuthenticationMiddleware."""
    return getattr(request.state, "auth", None) or AuthContext.anonymous()


async def get_current_user(auth: AuthContext = Depends(get_auth_context)) -> User:
    """Require an authenticated caller.

    Raises:
        AuthenticationError: 401 if the request carried no valid access token
    """
    if not auth.is_authenticated:
        raise AuthenticationError()
    return auth.user


def require_role(role: str) -> Callable:
    """Build a dependency requiring the current user to hold ``role``.

    Raises:
        AccessDeniedError: 403 if the role is missing
    """

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not current_user.has_role(role):
            raise AccessDeniedError()
        return current_user

    return dependency


require_admin = require_role(ROLE_ADMIN)


def get_client_meta(request: Request) -> ClientMeta:
    """IP address and user agent recorded on issued refresh tokens."""
    ip_address = getattr(request.state, "client_ip", None)
    if ip_address is None:
        ip_address = resolve_client_ip(request, get_settings().rate_limit_trusted_proxies_list)
    return ClientMeta(
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )


def get_auth_service() -> AuthService:
    return AuthService()


def get_rate_limit_service(request: Request) -> RateLimitService:
    return request.app.state.rate_limit_service
