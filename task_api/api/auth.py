"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Response, status

from task_api.api.dependencies import get_auth_service, get_client_meta, get_current_user
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
from task_api.models.user import ClientMeta, User
from task_api.services.auth_service import AuthService, TokenPair

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _user_summary(user: User) -> UserSummary:
    """Convert a User model to a UserSummary response."""
    return UserSummary(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        roles=user.roles,
        created_at=user.created_at,
    )


def _auth_response(pair: TokenPair) -> AuthResponse:
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        username=pair.user.username,
        email=pair.user.email,
        roles=pair.user.roles,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    client_meta: ClientMeta = Depends(get_client_meta),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return its first token pair.

    Raises:
        DuplicateUserError: 409 if the username or email is taken
    """
    pair = await auth_service.register(
        username=request.username,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        client_meta=client_meta,
    )
    return _auth_response(pair)


@router.post("/login")
async def login(
    request: LoginRequest,
    client_meta: ClientMeta = Depends(get_client_meta),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with username and password.

    Every failure is reported as the same 401 so callers cannot tell an
    unknown username from a wrong password.
    """
    pair = await auth_service.login(request.username, request.password, client_meta)
    return _auth_response(pair)


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    client_meta: ClientMeta = Depends(get_client_meta),
    auth_service: AuthService = Depends(get_auth_service),
) -> RefreshTokenResponse:
    """Rotate a refresh token. The presented token cannot be used again."""
    pair = await auth_service.refresh(request.refresh_token, client_meta)
    return RefreshTokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Revoke a refresh token. Unknown tokens are accepted silently."""
    await auth_service.logout(request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all")
async def logout_all(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> RevokedCount:
    """Revoke every refresh token of the current user."""
    revoked = await auth_service.logout_all(current_user)
    return RevokedCount(revoked=revoked)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Change the current user's password and sign out all sessions."""
    await auth_service.change_password(
        current_user, request.current_password, request.new_password
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)) -> UserSummary:
    """Get the current authenticated user's info."""
    return _user_summary(current_user)


@router.get("/sessions")
async def sessions(
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> list[SessionSummary]:
    """List the current user's active refresh tokens, newest first."""
    tokens = await auth_service.sessions(current_user)
    return [
        SessionSummary(
            id=token.id,
            created_at=token.created_at,
            expiry_date=token.expiry_date,
            last_used_at=token.last_used_at,
            ip_address=token.ip_address,
            user_agent=token.user_agent,
        )
        for token in tokens
    ]
