"""Unit tests for UserService with a mocked asyncpg pool."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import asyncpg
import pytest

from task_api.exceptions import DuplicateUserError
from task_api.models.user import ROLE_USER
from task_api.services.password_service import verify_password
from task_api.services.user_service import UserService


def _user_row(username="alice", password_hash="$2b$12$hash", is_active=True):
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "username": username,
        "email": f"{username}@example.com",
        "full_name": None,
        "is_active": is_active,
        "roles": [ROLE_USER],
        "created_at": now,
        "updated_at": now,
        "password_hash": password_hash,
    }


@pytest.fixture
def user_service(mock_pool):
    with patch("task_api.services.user_service.get_pool", new=AsyncMock(return_value=mock_pool)):
        yield UserService()


class TestCreateUser:
    async def test_hashes_password(self, user_service, mock_conn):
        user = await user_service.create_user("alice", "alice@example.com", "long-password")

        args = mock_conn.execute.call_args.args
        stored_hash = args[4]
        assert stored_hash != "long-password"
        assert verify_password("long-password", stored_hash)
        assert user.roles == [ROLE_USER]
        assert user.is_active

    async def test_unique_violation_is_duplicate(self, user_service, mock_conn):
        mock_conn.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(DuplicateUserError) as exc_info:
            await user_service.create_user("alice", "alice@example.com", "long-password")

        assert exc_info.value.status_code == 409


class TestLookups:
    async def test_get_by_username_returns_user_and_hash(self, user_service, mock_conn):
        mock_conn.fetchrow.return_value = _user_row(password_hash="h")

        user, password_hash = await user_service.get_by_username("ALICE")

        assert user.username == "alice"
        assert password_hash == "h"
        assert "LOWER(username) = LOWER($1)" in mock_conn.fetchrow.call_args.args[0]

    async def test_get_by_username_missing(self, user_service, mock_conn):
        mock_conn.fetchrow.return_value = None
        assert await user_service.get_by_username("ghost") is None

    async def test_get_by_id(self, user_service, mock_conn):
        row = _user_row()
        mock_conn.fetchrow.return_value = row

        user, _ = await user_service.get_by_id(row["id"])

        assert user.id == row["id"]

    async def test_exists_by_username_or_email(self, user_service, mock_conn):
        mock_conn.fetchval.return_value = True
        assert await user_service.exists_by_username_or_email("alice", "a@example.com")

    async def test_update_password_stores_new_hash(self, user_service, mock_conn):
        user_id = uuid4()

        await user_service.update_password(user_id, "brand-new-password")

        args = mock_conn.execute.call_args.args
        assert verify_password("brand-new-password", args[1])
        assert args[-1] == user_id
