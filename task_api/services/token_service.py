"""Signed access token issuance and verification (HS256 JWT)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, TypeVar

import jwt
import structlog

from task_api.config import Settings, get_settings
from task_api.exceptions import TokenExpiredError, TokenVerificationError

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "iat", "exp"]

T = TypeVar("T")


class TokenService:
    """Issues and verifies stateless access tokens.

    Validity depends only on the signature and ``exp``; nothing is looked up
    in storage.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return self.settings.access_token_expire_minutes * 60

    def issue(
        self,
        subject: str,
        extra_claims: Optional[dict[str, Any]] = None,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Create a signed access token.

        Args:
            subject: Username placed in the 'sub' claim
            extra_claims: Additional claims (cannot override sub/iat/exp)
            ttl: Lifetime override; defaults to the configured access token TTL

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        lifetime = ttl if ttl is not None else timedelta(seconds=self.expires_in)
        payload: dict[str, Any] = dict(extra_claims or {})
        payload.update(
            {
                "sub": subject,
                "iat": now,
                "exp": now + lifetime,
            }
        )
        token = jwt.encode(payload, self.settings.jwt_secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_issued",
            subject=subject,
            expires_seconds=int(lifetime.total_seconds()),
        )
        return token

    def parse_claims(self, token: str) -> dict[str, Any]:
        """Verify a token and return all of its claims.

        Raises:
            TokenExpiredError: If the signature is valid but the token expired
            TokenVerificationError: If the token is malformed or tampered with
        """
        try:
            return jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Access token has expired") from e
        except jwt.InvalidTokenError as e:
            raise TokenVerificationError(f"Invalid access token: {e}") from e

    def parse_claim(self, token: str, selector: Callable[[dict[str, Any]], T]) -> T:
        """Verify a token and apply ``selector`` to its claims."""
        return selector(self.parse_claims(token))

    def parse_subject(self, token: str) -> str:
        """Verify a token and return its subject.

        Raises:
            TokenVerificationError: If verification fails or 'sub' is not a string
        """
        subject = self.parse_claim(token, lambda claims: claims.get("sub"))
        if not isinstance(subject, str) or not subject:
            raise TokenVerificationError("Invalid access token: missing subject")
        return subject

    def is_valid(self, token: str, expected_subject: str) -> bool:
        """True iff the signature verifies, the subject matches and it has not expired."""
        try:
            claims = self.parse_claims(token)
        except TokenVerificationError:
            return False

        if claims.get("sub") != expected_subject:
            return False

        return datetime.now(timezone.utc).timestamp() < claims["exp"]
