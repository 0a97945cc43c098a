"""Unit tests for AuthenticationMiddleware and the role dependencies."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from task_api.api.auth_middleware import AuthenticationMiddleware, extract_bearer_token
from task_api.api.dependencies import get_auth_context, require_admin
from task_api.exceptions import TaskApiError
from task_api.models.user import ROLE_ADMIN, AuthContext, User
from task_api.services.token_service import TokenService


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def user_service() -> MagicMock:
    service = MagicMock()
    service.get_by_username = AsyncMock(return_value=None)
    return service


@pytest.fixture
def client(token_service, user_service) -> TestClient:
    app = FastAPI()
    app.add_middleware(
        AuthenticationMiddleware, token_service=token_service, user_service=user_service
    )

    @app.exception_handler(TaskApiError)
    async def handle(request: Request, exc: TaskApiError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.get("/whoami")
    async def whoami(auth: AuthContext = Depends(get_auth_context)) -> dict:
        return {
            "authenticated": auth.is_authenticated,
            "username": auth.user.username if auth.user else None,
        }

    @app.get("/admin-only")
    async def admin_only(admin: User = Depends(require_admin)) -> dict:
        return {"ok": True}

    return TestClient(app, raise_server_exceptions=False)


class TestExtractBearerToken:
    def test_missing_header(self):
        request = MagicMock()
        request.headers = {}
        assert extract_bearer_token(request) is None

    def test_non_bearer_scheme(self):
        request = MagicMock()
        request.headers = {"Authorization": "Basic abc"}
        assert extract_bearer_token(request) is None

    def test_bearer_token(self):
        request = MagicMock()
        request.headers = {"Authorization": "Bearer abc.def.ghi"}
        assert extract_bearer_token(request) == "abc.def.ghi"


class TestAuthenticationMiddleware:
    """Tests for context resolution."""

    def test_no_header_is_anonymous(self, client, user_service):
        response = client.get("/whoami")

        assert response.json() == {"authenticated": False, "username": None}
        user_service.get_by_username.assert_not_called()

    def test_valid_token_authenticates(self, client, token_service, user_service, make_user):
        user = make_user(username="alice")
        user_service.get_by_username.return_value = (user, "hash")
        token = token_service.issue("alice")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json() == {"authenticated": True, "username": "alice"}

    def test_invalid_token_falls_back_to_anonymous(self, client, user_service):
        response = client.get("/whoami", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 200
        assert response.json()["authenticated"] is False
        user_service.get_by_username.assert_not_called()

    def test_expired_token_is_anonymous(self, client, token_service, user_service, make_user):
        user_service.get_by_username.return_value = (make_user(username="alice"), "hash")
        token = token_service.issue("alice", ttl=timedelta(seconds=-5))

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["authenticated"] is False

    def test_unknown_subject_is_anonymous(self, client, token_service):
        token = token_service.issue("ghost")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["authenticated"] is False

    def test_disabled_user_is_anonymous(self, client, token_service, user_service, make_user):
        user_service.get_by_username.return_value = (
            make_user(username="alice", is_active=False),
            "hash",
        )
        token = token_service.issue("alice")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["authenticated"] is False

    def test_storage_fault_is_server_error(self, client, token_service, user_service):
        user_service.get_by_username.side_effect = asyncpg.PostgresConnectionError("down")
        token = token_service.issue("alice")

        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 500


class TestRequireRole:
    """Tests for role enforcement."""

    def test_anonymous_is_401(self, client):
        assert client.get("/admin-only").status_code == 401

    def test_missing_role_is_403(self, client, token_service, user_service, make_user):
        user_service.get_by_username.return_value = (make_user(username="alice"), "hash")
        token = token_service.issue("alice")

        response = client.get("/admin-only", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_admin_allowed(self, client, token_service, user_service, make_user):
        admin = make_user(username="root", roles=[ROLE_ADMIN])
        user_service.get_by_username.return_value = (admin, "hash")
        token = token_service.issue("root")

        response = client.get("/admin-only", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
