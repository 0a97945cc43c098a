"""Auth request and response models with validation.

Wire format is camelCase (``accessToken``, ``expiresIn``...); snake_case
field names are accepted on input as well.
"""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _password_not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    return v


class LoginRequest(CamelModel):
    """Login credentials.

    No format rules beyond non-blank: a malformed username must fail the
    same way as an unknown one.
    """

    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class RegisterRequest(CamelModel):
    """New account registration.

    Attributes:
        username: Unique identifier (3-50 chars, alphanumeric + underscore/hyphen)
        email: Unique email address
        password: Password (min 8 chars)
        full_name: Optional display name (max 100 chars)
    """

    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("username")
    @classmethod
    def username_valid_chars(cls, v: str) -> str:
        """Ensure username contains only alphanumeric, underscore, or hyphen."""
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username must contain only alphanumeric characters, "
                "underscores, or hyphens"
            )
        return v

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Email must be a valid address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class RefreshRequest(CamelModel):
    """Request carrying a refresh token (refresh and logout)."""

    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    """Password change for the authenticated user."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        return _password_not_blank(v)


class AuthResponse(CamelModel):
    """Successful login or registration.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived opaque token for obtaining new access tokens
        type: Always "Bearer"
        expires_in: Access token lifetime in seconds
    """

    access_token: str
    refresh_token: str
    type: str = "Bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")
    username: str
    email: str
    roles: list[str]


class RefreshTokenResponse(CamelModel):
    """Rotated token pair."""

    access_token: str
    refresh_token: str
    type: str = "Bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")


class UserSummary(CamelModel):
    """Compact user representation for API responses."""

    id: UUID
    username: str
    email: str
    full_name: Optional[str] = None
    is_active: bool
    roles: list[str]
    created_at: datetime


class SessionSummary(CamelModel):
    """An active refresh token as shown to its owner."""

    id: UUID
    created_at: datetime
    expiry_date: datetime
    last_used_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class RevokedCount(CamelModel):
    revoked: int
