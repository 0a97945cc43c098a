"""User and refresh token models."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

ROLE_USER = "ROLE_USER"
ROLE_ADMIN = "ROLE_ADMIN"


class User(BaseModel):
    """A registered account owning tasks."""

    id: UUID
    username: str
    email: str
    full_name: Optional[str] = None
    is_active: bool = True
    roles: list[str] = Field(default_factory=lambda: [ROLE_USER])
    created_at: datetime
    updated_at: datetime

    def has_role(self, role: str) -> bool:
        return role in self.roles


class RefreshToken(BaseModel):
    """A persisted refresh token.

    Only the SHA-256 hash of the opaque value is stored; the raw value is
    handed to the client once and never persisted.
    """

    id: UUID
    user_id: UUID
    token_hash: str
    expiry_date: datetime
    created_at: datetime
    revoked: bool = False
    revoked_at: Optional[datetime] = None
    used: bool = False
    last_used_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expiry_date

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """True iff the token is neither revoked, used nor expired."""
        return not self.revoked and not self.used and not self.is_expired(now)


class ClientMeta(BaseModel):
    """Where a token request came from."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthContext(BaseModel):
    """Per-request authentication result stored on ``request.state.auth``."""

    user: Optional[User] = None
    claims: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()
