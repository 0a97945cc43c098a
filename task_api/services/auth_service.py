"""Login, registration and token refresh orchestration."""

from typing import Optional

import structlog
from pydantic import BaseModel

from task_api.exceptions import (
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
)
from task_api.models.user import ClientMeta, RefreshToken, User
from task_api.services.password_service import burn_verification, verify_password
from task_api.services.refresh_token_service import RefreshTokenService
from task_api.services.token_service import TokenService
from task_api.services.user_service import UserService

logger = structlog.get_logger(__name__)


class TokenPair(BaseModel):
    """Access and refresh token issued together for one user."""

    access_token: str
    refresh_token: str
    expires_in: int
    user: User


class AuthService:
    """Service tying users, access tokens and refresh tokens together.

    Every credential failure raises ``InvalidCredentialsError`` with the same
    message, whether the user is unknown, the password is wrong or the
    account is disabled. The distinction is only logged.
    """

    def __init__(
        self,
        user_service: Optional[UserService] = None,
        token_service: Optional[TokenService] = None,
        refresh_token_service: Optional[RefreshTokenService] = None,
    ):
        self.users = user_service or UserService()
        self.tokens = token_service or TokenService()
        self.refresh_tokens = refresh_token_service or RefreshTokenService()

    def create_access_token(self, user: User) -> str:
        return self.tokens.issue(
            user.username,
            extra_claims={"uid": str(user.id), "roles": user.roles},
        )

    async def _issue_pair(self, user: User, client_meta: Optional[ClientMeta]) -> TokenPair:
        access_token = self.create_access_token(user)
        raw_refresh, _ = await self.refresh_tokens.issue(user.id, client_meta)
        return TokenPair(
            access_token=access_token,
            refresh_token=raw_refresh,
            expires_in=self.tokens.expires_in,
            user=user,
        )

    async def login(
        self, username: str, password: str, client_meta: Optional[ClientMeta] = None
    ) -> TokenPair:
        """Authenticate with username and password.

        Args:
            username: Username (case-insensitive)
            password: Plain-text password
            client_meta: Caller's IP address and user agent

        Returns:
            TokenPair for the authenticated user

        Raises:
            InvalidCredentialsError: On any credential failure
        """
        found = await self.users.get_by_username(username)

        if found is None:
            burn_verification(password)
            logger.warning("login_failed", username=username, reason="unknown_user")
            raise InvalidCredentialsError()

        user, password_hash = found

        if not verify_password(password, password_hash):
            logger.warning("login_failed", username=username, reason="wrong_password")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("login_failed", username=username, reason="account_disabled")
            raise InvalidCredentialsError()

        pair = await self._issue_pair(user, client_meta)
        logger.info("login_success", user_id=str(user.id), username=user.username)
        return pair

    async def refresh(
        self, raw_token: str, client_meta: Optional[ClientMeta] = None
    ) -> TokenPair:
        """Exchange a refresh token for a new access/refresh token pair.

        Raises:
            InvalidRefreshTokenError: If the token cannot be rotated or its
                owner no longer exists or is disabled
        """
        old_token, new_raw, _ = await self.refresh_tokens.validate_and_rotate(
            raw_token, client_meta
        )

        found = await self.users.get_by_id(old_token.user_id)
        if found is None or not found[0].is_active:
            await self.refresh_tokens.revoke_all(old_token.user_id)
            logger.warning("token_refresh_rejected", user_id=str(old_token.user_id))
            raise InvalidRefreshTokenError()

        user = found[0]
        logger.info("token_refreshed", user_id=str(user.id))
        return TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=new_raw,
            expires_in=self.tokens.expires_in,
            user=user,
        )

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        client_meta: Optional[ClientMeta] = None,
    ) -> TokenPair:
        """Create an account and sign it in.

        Raises:
            DuplicateUserError: If the username or email is taken
        """
        if await self.users.exists_by_username_or_email(username, email):
            logger.warning("registration_duplicate", username=username)
            raise DuplicateUserError("Username or email already exists")

        user = await self.users.create_user(username, email, password, full_name)
        return await self._issue_pair(user, client_meta)

    async def logout(self, raw_token: str) -> bool:
        """Revoke one refresh token. Unknown or already revoked tokens are ignored."""
        return await self.refresh_tokens.revoke(raw_token)

    async def logout_all(self, user: User) -> int:
        return await self.refresh_tokens.revoke_all(user.id)

    async def change_password(self, user: User, current_password: str, new_password: str) -> int:
        """Change a user's password and sign out every session.

        Returns:
            Number of refresh tokens revoked

        Raises:
            InvalidCredentialsError: If the current password does not match
        """
        found = await self.users.get_by_id(user.id)
        if found is None or not verify_password(current_password, found[1]):
            logger.warning("password_change_failed", user_id=str(user.id))
            raise InvalidCredentialsError()

        await self.users.update_password(user.id, new_password)
        return await self.refresh_tokens.revoke_all(user.id)

    async def sessions(self, user: User) -> list[RefreshToken]:
        return await self.refresh_tokens.list_active_sessions(user.id)
