"""User store service."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from task_api.database import get_pool
from task_api.exceptions import DuplicateUserError
from task_api.models.user import ROLE_USER, User
from task_api.services.password_service import hash_password

logger = structlog.get_logger(__name__)

USER_COLUMNS = "id, username, email, full_name, is_active, roles, created_at, updated_at"


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        is_active=row["is_active"],
        roles=list(row["roles"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserService:
    """Service for user lookup and registration."""

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        roles: Optional[list[str]] = None,
    ) -> User:
        """Create a new user with a hashed password.

        Args:
            username: Unique username
            email: Unique email address
            password: Plain-text password (will be hashed)
            full_name: Optional display name
            roles: Granted roles, ROLE_USER by default

        Returns:
            Created User model

        Raises:
            DuplicateUserError: If the username or email is already registered
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        roles = roles or [ROLE_USER]
        password_hash = hash_password(password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, username, email, password_hash, full_name, is_active, roles, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, TRUE, $6, $7, $8)
                    """,
                    user_id,
                    username,
                    email,
                    password_hash,
                    full_name,
                    roles,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_create_duplicate", username=username)
            raise DuplicateUserError("Username or email already exists") from e

        logger.info("user_created", user_id=str(user_id), username=username, roles=roles)

        return User(
            id=user_id,
            username=username,
            email=email,
            full_name=full_name,
            is_active=True,
            roles=roles,
            created_at=now,
            updated_at=now,
        )

    async def exists_by_username_or_email(self, username: str, email: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM users
                    WHERE LOWER(username) = LOWER($1) OR LOWER(email) = LOWER($2)
                )
                """,
                username,
                email,
            )

        return bool(found)

    async def get_by_username(self, username: str) -> Optional[tuple[User, str]]:
        """Get a user by username (case-insensitive).

        Args:
            username: Username to look up

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE LOWER(username) = LOWER($1)
                """,
                username,
            )

        if row is None:
            return None

        return _row_to_user(row), row["password_hash"]

    async def get_by_id(self, user_id: UUID) -> Optional[tuple[User, str]]:
        """Get a user by UUID.

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_user(row), row["password_hash"]

    async def update_password(self, user_id: UUID, new_password: str) -> None:
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET password_hash = $1, updated_at = $2 WHERE id = $3",
                hash_password(new_password),
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("user_password_updated", user_id=str(user_id))
