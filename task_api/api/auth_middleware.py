"""Bearer token authentication middleware."""

from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from task_api.exceptions import TokenVerificationError
from task_api.models.user import AuthContext
from task_api.services.token_service import TokenService
from task_api.services.user_service import UserService

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Resolve the caller from an access token into ``request.state.auth``.

    Never rejects a request: a missing or unverifiable token leaves an
    anonymous context and route dependencies decide whether that is enough.
    Database errors while loading the user propagate.
    """

    def __init__(
        self,
        app,
        token_service: Optional[TokenService] = None,
        user_service: Optional[UserService] = None,
    ):
        super().__init__(app)
        self._token_service = token_service
        self._user_service = user_service

    @property
    def token_service(self) -> TokenService:
        if self._token_service is None:
            self._token_service = TokenService()
        return self._token_service

    @property
    def user_service(self) -> UserService:
        if self._user_service is None:
            self._user_service = UserService()
        return self._user_service

    async def authenticate(self, token: str) -> AuthContext:
        try:
            claims = self.token_service.parse_claims(token)
            username = self.token_service.parse_subject(token)
        except TokenVerificationError as e:
            logger.warning("access_token_rejected", reason=str(e))
            return AuthContext.anonymous()

        found = await self.user_service.get_by_username(username)
        if found is None:
            logger.warning("access_token_unknown_subject", username=username)
            return AuthContext.anonymous()

        user, _ = found
        if not user.is_active:
            logger.warning("access_token_user_disabled", username=username)
            return AuthContext.anonymous()

        if not self.token_service.is_valid(token, user.username):
            return AuthContext.anonymous()

        structlog.contextvars.bind_contextvars(user_id=str(user.id))
        return AuthContext(user=user, claims=claims)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        token = extract_bearer_token(request)
        if token is None:
            request.state.auth = AuthContext.anonymous()
        else:
            request.state.auth = await self.authenticate(token)

        return await call_next(request)
