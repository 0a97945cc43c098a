"""Application exception hierarchy."""

from fastapi import status

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
UNAUTHORIZED_MESSAGE = "Unauthorized"


class TaskApiError(Exception):
    """Base exception for the task API."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(TaskApiError):
    """Authentication failed.

    The message is deliberately generic; the concrete reason is only logged.
    """

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = UNAUTHORIZED_MESSAGE):
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Unknown user, wrong password or disabled account."""

    def __init__(self):
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token is unknown, expired, revoked or already used."""


class AccessDeniedError(TaskApiError):
    """Authenticated but missing a required role."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class TokenVerificationError(Exception):
    """A signed access token could not be verified."""


class TokenExpiredError(TokenVerificationError):
    """A signed access token verified but is past its expiry."""


class DuplicateUserError(TaskApiError):
    """Username or email already registered."""

    status_code = status.HTTP_409_CONFLICT


class ConfigurationError(Exception):
    """Startup configuration is invalid."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))
