"""Unit tests for TokenService (access token JWTs)."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from task_api.exceptions import TokenExpiredError, TokenVerificationError
from task_api.services.token_service import JWT_ALGORITHM, TokenService


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService(settings)


class TestIssue:
    """Tests for issue."""

    def test_round_trip_subject(self, token_service):
        token = token_service.issue("alice")

        assert token_service.parse_subject(token) == "alice"
        assert token_service.is_valid(token, "alice")

    def test_claims_include_iat_exp_and_extras(self, token_service, settings):
        token = token_service.issue("alice", extra_claims={"roles": ["ROLE_USER"], "uid": "u-1"})

        claims = token_service.parse_claims(token)
        assert claims["roles"] == ["ROLE_USER"]
        assert claims["uid"] == "u-1"
        assert claims["exp"] - claims["iat"] == settings.access_token_expire_minutes * 60

    def test_extra_claims_cannot_override_subject(self, token_service):
        token = token_service.issue("alice", extra_claims={"sub": "mallory"})
        assert token_service.parse_subject(token) == "alice"

    def test_expires_in_seconds(self, token_service):
        assert token_service.expires_in == 3600

    def test_parse_claim_selector(self, token_service):
        token = token_service.issue("alice", extra_claims={"uid": "u-1"})
        assert token_service.parse_claim(token, lambda c: c["uid"]) == "u-1"


class TestVerification:
    """Tests for parsing and validity checks."""

    def test_tampered_token_rejected(self, token_service):
        token = token_service.issue("alice")
        header, payload, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        tampered = ".".join([header, payload, flipped])

        with pytest.raises(TokenVerificationError):
            token_service.parse_subject(tampered)
        assert not token_service.is_valid(tampered, "alice")

    def test_wrong_secret_rejected(self, token_service):
        forged = jwt.encode(
            {
                "sub": "alice",
                "iat": datetime.now(timezone.utc),
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            "another-secret-that-is-long-enough-for-hs256",
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(TokenVerificationError):
            token_service.parse_claims(forged)

    def test_garbage_rejected(self, token_service):
        with pytest.raises(TokenVerificationError):
            token_service.parse_claims("not-a-jwt")
        assert not token_service.is_valid("not-a-jwt", "alice")

    def test_zero_ttl_token_is_expired(self, token_service):
        token = token_service.issue("alice", ttl=timedelta(0))

        with pytest.raises(TokenExpiredError):
            token_service.parse_claims(token)
        assert not token_service.is_valid(token, "alice")

    def test_expired_is_a_verification_error(self):
        assert issubclass(TokenExpiredError, TokenVerificationError)

    def test_subject_mismatch_is_invalid(self, token_service):
        token = token_service.issue("alice")
        assert not token_service.is_valid(token, "bob")

    def test_missing_exp_rejected(self, token_service, settings):
        token = jwt.encode(
            {"sub": "alice", "iat": datetime.now(timezone.utc)},
            settings.jwt_secret,
            algorithm=JWT_ALGORITHM,
        )

        with pytest.raises(TokenVerificationError):
            token_service.parse_claims(token)
