"""Refresh token persistence, rotation and revocation."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import NoReturn, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from task_api.config import Settings, get_settings
from task_api.database import get_pool
from task_api.exceptions import InvalidRefreshTokenError
from task_api.models.user import ClientMeta, RefreshToken

logger = structlog.get_logger(__name__)

USER_AGENT_MAX_LENGTH = 500
IP_ADDRESS_MAX_LENGTH = 45

TOKEN_COLUMNS = """
    id, user_id, token_hash, expiry_date, created_at, revoked, revoked_at,
    used, last_used_at, ip_address, user_agent
"""


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw refresh token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status like 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    return value[:length] if value else None


def _row_to_token(row) -> RefreshToken:
    return RefreshToken(
        id=row["id"],
        user_id=row["user_id"],
        token_hash=row["token_hash"],
        expiry_date=row["expiry_date"],
        created_at=row["created_at"],
        revoked=row["revoked"],
        revoked_at=row["revoked_at"],
        used=row["used"],
        last_used_at=row["last_used_at"],
        ip_address=row["ip_address"],
        user_agent=row["user_agent"],
    )


class RefreshTokenService:
    """Service for the refresh token lifecycle.

    States: issued/valid -> used (rotated) | revoked | expired. Presenting
    a token that was already rotated is treated as theft: every token of
    the owning user is revoked.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def _insert(
        self, conn: asyncpg.Connection, user_id: UUID, client_meta: ClientMeta
    ) -> tuple[str, RefreshToken]:
        raw_token = secrets.token_urlsafe(48)
        now = datetime.now(timezone.utc)
        token = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expiry_date=now + timedelta(days=self.settings.refresh_token_expire_days),
            created_at=now,
            ip_address=_truncate(client_meta.ip_address, IP_ADDRESS_MAX_LENGTH),
            user_agent=_truncate(client_meta.user_agent, USER_AGENT_MAX_LENGTH),
        )

        await conn.execute(
            """
            INSERT INTO refresh_tokens
                (id, user_id, token_hash, expiry_date, created_at, revoked, used, ip_address, user_agent)
            VALUES ($1, $2, $3, $4, $5, FALSE, FALSE, $6, $7)
            """,
            token.id,
            token.user_id,
            token.token_hash,
            token.expiry_date,
            token.created_at,
            token.ip_address,
            token.user_agent,
        )
        return raw_token, token

    async def _enforce_device_limit(self, conn: asyncpg.Connection, user_id: UUID) -> int:
        """Delete the oldest active sessions so a new one fits under the limit."""
        keep = self.settings.refresh_token_max_devices - 1
        result = await conn.execute(
            """
            DELETE FROM refresh_tokens
            WHERE id IN (
                SELECT id FROM refresh_tokens
                WHERE user_id = $1 AND revoked = FALSE AND used = FALSE AND expiry_date > $2
                ORDER BY created_at DESC
                OFFSET $3
            )
            """,
            user_id,
            datetime.now(timezone.utc),
            max(0, keep),
        )
        deleted = _affected_rows(result)
        if deleted:
            logger.warning(
                "refresh_token_device_limit_reached",
                user_id=str(user_id),
                max_devices=self.settings.refresh_token_max_devices,
                deleted=deleted,
            )
        return deleted

    async def _revoke_all(self, conn: asyncpg.Connection, user_id: UUID) -> int:
        result = await conn.execute(
            """
            UPDATE refresh_tokens
            SET revoked = TRUE, revoked_at = $1
            WHERE user_id = $2 AND revoked = FALSE
            """,
            datetime.now(timezone.utc),
            user_id,
        )
        return _affected_rows(result)

    async def issue(
        self, user_id: UUID, client_meta: Optional[ClientMeta] = None
    ) -> tuple[str, RefreshToken]:
        """Create and persist a new refresh token.

        Args:
            user_id: Owner of the token
            client_meta: Issuing IP address and user agent

        Returns:
            Tuple of (raw_token, stored RefreshToken)
        """
        client_meta = client_meta or ClientMeta()
        pool = await get_pool()

        async with pool.acquire() as conn:
            async with conn.transaction():
                await self._enforce_device_limit(conn, user_id)
                raw_token, token = await self._insert(conn, user_id, client_meta)

        logger.info(
            "refresh_token_created",
            user_id=str(user_id),
            token_id=str(token.id),
            expires_at=token.expiry_date.isoformat(),
            ip_address=token.ip_address,
        )
        return raw_token, token

    async def find(self, raw_token: str) -> Optional[RefreshToken]:
        """Look up a token by its raw value."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {TOKEN_COLUMNS} FROM refresh_tokens WHERE token_hash = $1",
                hash_token(raw_token),
            )

        return _row_to_token(row) if row is not None else None

    async def _reject(self, existing: Optional[RefreshToken]) -> NoReturn:
        """Log why a token was rejected; revoke the family on reuse.

        Runs outside the failed rotation so the revocation is committed.
        """
        if existing is None:
            logger.warning("refresh_token_not_found")
        elif existing.used:
            revoked = await self.revoke_all(existing.user_id)
            logger.error(
                "refresh_token_reuse_detected",
                user_id=str(existing.user_id),
                token_id=str(existing.id),
                tokens_revoked=revoked,
            )
        elif existing.revoked:
            logger.warning("refresh_token_revoked", user_id=str(existing.user_id))
        else:
            logger.warning("refresh_token_expired", user_id=str(existing.user_id))

        raise InvalidRefreshTokenError()

    async def validate(self, raw_token: str) -> RefreshToken:
        """Return the stored token if it is currently valid.

        Raises:
            InvalidRefreshTokenError: If absent, used, revoked or expired
        """
        token = await self.find(raw_token)
        if token is None or not token.is_valid():
            await self._reject(token)
        return token

    async def validate_and_rotate(
        self, raw_token: str, client_meta: Optional[ClientMeta] = None
    ) -> tuple[RefreshToken, str, RefreshToken]:
        """Consume a valid token and issue its replacement in one transaction.

        The old row is claimed with a conditional UPDATE, so of two concurrent
        rotations of the same token only one can succeed.

        Args:
            raw_token: The presented refresh token
            client_meta: Caller's IP/user agent; falls back to the old token's

        Returns:
            Tuple of (consumed old token, new raw token, new stored token)

        Raises:
            InvalidRefreshTokenError: If the token cannot be rotated
        """
        token_hash = hash_token(raw_token)
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    UPDATE refresh_tokens
                    SET used = TRUE, revoked = TRUE, revoked_at = $1, last_used_at = $1
                    WHERE token_hash = $2
                      AND revoked = FALSE
                      AND used = FALSE
                      AND expiry_date > $1
                    RETURNING {TOKEN_COLUMNS}
                    """,
                    now,
                    token_hash,
                )

                if row is not None:
                    old_token = _row_to_token(row)
                    meta = client_meta or ClientMeta(
                        ip_address=old_token.ip_address,
                        user_agent=old_token.user_agent,
                    )
                    await self._enforce_device_limit(conn, old_token.user_id)
                    new_raw, new_token = await self._insert(conn, old_token.user_id, meta)

        if row is None:
            await self._reject(await self.find(raw_token))

        logger.info(
            "refresh_token_rotated",
            user_id=str(old_token.user_id),
            old_token_id=str(old_token.id),
            new_token_id=str(new_token.id),
        )
        return old_token, new_raw, new_token

    async def revoke(self, raw_token: str) -> bool:
        """Revoke a single token (logout).

        Returns:
            True if a live token was revoked, False if unknown or already revoked
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked = TRUE, revoked_at = $1
                WHERE token_hash = $2 AND revoked = FALSE
                """,
                datetime.now(timezone.utc),
                hash_token(raw_token),
            )

        revoked = _affected_rows(result) > 0
        logger.info("refresh_token_logout", revoked=revoked)
        return revoked

    async def revoke_all(self, user_id: UUID) -> int:
        """Revoke every non-revoked token of a user.

        Returns:
            Number of tokens revoked
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            count = await self._revoke_all(conn, user_id)

        logger.info("all_refresh_tokens_revoked", user_id=str(user_id), count=count)
        return count

    async def list_active_sessions(self, user_id: UUID) -> list[RefreshToken]:
        """Valid tokens of a user, newest first."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TOKEN_COLUMNS}
                FROM refresh_tokens
                WHERE user_id = $1 AND revoked = FALSE AND used = FALSE AND expiry_date > $2
                ORDER BY created_at DESC
                """,
                user_id,
                datetime.now(timezone.utc),
            )

        return [_row_to_token(row) for row in rows]

    async def count_active_sessions(self, user_id: UUID) -> int:
        pool = await get_pool()

        async with pool.acquire() as conn:
            count = await conn.fetchval(
                """
                SELECT COUNT(*) FROM refresh_tokens
                WHERE user_id = $1 AND revoked = FALSE AND used = FALSE AND expiry_date > $2
                """,
                user_id,
                datetime.now(timezone.utc),
            )

        return count or 0

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete tokens past their expiry date."""
        now = now or datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM refresh_tokens WHERE expiry_date < $1",
                now,
            )

        deleted = _affected_rows(result)
        logger.info("refresh_tokens_purged_expired", deleted=deleted)
        return deleted

    async def purge_old_revoked(self, older_than: datetime) -> int:
        """Delete tokens revoked before ``older_than``."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM refresh_tokens
                WHERE revoked = TRUE AND COALESCE(revoked_at, created_at) < $1
                """,
                older_than,
            )

        deleted = _affected_rows(result)
        logger.info("refresh_tokens_purged_revoked", deleted=deleted)
        return deleted

    async def purge_unused(self, older_than: datetime) -> int:
        """Delete tokens not used since ``older_than``."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM refresh_tokens
                WHERE COALESCE(last_used_at, created_at) < $1
                """,
                older_than,
            )

        deleted = _affected_rows(result)
        logger.info("refresh_tokens_purged_unused", deleted=deleted)
        return deleted
