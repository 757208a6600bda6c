"""Access and refresh token tests."""

from datetime import timedelta

import pytest
from jose import jwt

from bhamail.core.config import Settings
from bhamail.core.exceptions import ConfigurationError, InvalidTokenError
from bhamail.core.jwt import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    AccessClaims,
    TokenIssuer,
)

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)


class TestIssueTokens:
    """Test token contents."""

    def test_access_token_claims(self, issuer):
        token = issuer.issue_access_token("user-1", "jane@bhamail.com")
        payload = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])

        assert payload["sub"] == "user-1"
        assert payload["email"] == "jane@bhamail.com"
        assert payload["type"] == ACCESS_TOKEN_TYPE
        assert payload["exp"] - payload["iat"] == 30 * 60

    def test_refresh_token_claims(self, issuer):
        token = issuer.issue_refresh_token("user-1")
        payload = jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])

        assert payload["sub"] == "user-1"
        assert payload["type"] == REFRESH_TOKEN_TYPE
        assert "email" not in payload
        assert payload["jti"]
        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600

    def test_refresh_tokens_are_unique(self, issuer):
        assert issuer.issue_refresh_token("user-1") != issuer.issue_refresh_token("user-1")

    def test_from_settings(self):
        config = Settings(
            JWT_SECRET="a",
            JWT_REFRESH_SECRET="b",
            ACCESS_TOKEN_EXPIRE_MINUTES=5,
            REFRESH_TOKEN_EXPIRE_DAYS=1,
        )
        issuer = TokenIssuer.from_settings(config)

        assert issuer.access_ttl == timedelta(minutes=5)
        assert issuer.refresh_ttl == timedelta(days=1)


class TestVerifyTokens:
    """Test verification failures."""

    def test_refresh_round_trip(self, issuer):
        token = issuer.issue_refresh_token("user-42")
        assert issuer.verify_refresh_token(token) == "user-42"

    def test_access_round_trip(self, issuer):
        token = issuer.issue_access_token("user-42", "a@bhamail.com")
        assert issuer.verify_access_token(token) == AccessClaims("user-42", "a@bhamail.com")

    def test_access_token_is_not_a_refresh_token(self, issuer):
        token = issuer.issue_access_token("user-1", "a@bhamail.com")
        with pytest.raises(InvalidTokenError):
            issuer.verify_refresh_token(token)

    def test_refresh_token_is_not_an_access_token(self, issuer):
        token = issuer.issue_refresh_token("user-1")
        with pytest.raises(InvalidTokenError):
            issuer.verify_access_token(token)

    def test_type_claim_is_checked_even_with_shared_secret(self):
        issuer = TokenIssuer("same", "same")
        token = issuer.issue_access_token("user-1", "a@bhamail.com")

        with pytest.raises(InvalidTokenError, match="Invalid refresh token"):
            issuer.verify_refresh_token(token)

    def test_expired_token_is_rejected(self):
        issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, refresh_ttl=timedelta(seconds=-1))
        token = issuer.issue_refresh_token("user-1")

        with pytest.raises(InvalidTokenError):
            issuer.verify_refresh_token(token)

    def test_wrong_signature_is_rejected(self, issuer):
        other = TokenIssuer(ACCESS_SECRET, "another-refresh-secret")
        with pytest.raises(InvalidTokenError):
            issuer.verify_refresh_token(other.issue_refresh_token("user-1"))

    def test_garbage_is_rejected(self, issuer):
        with pytest.raises(InvalidTokenError):
            issuer.verify_refresh_token("not-a-jwt")


class TestConfiguration:
    """Test missing-secret handling."""

    def test_missing_access_secret_raises_on_issue(self):
        issuer = TokenIssuer(None, REFRESH_SECRET)
        with pytest.raises(ConfigurationError):
            issuer.issue_access_token("user-1", "a@bhamail.com")

    def test_missing_refresh_secret_raises_on_verify(self):
        issuer = TokenIssuer(ACCESS_SECRET, "")
        with pytest.raises(ConfigurationError):
            issuer.verify_refresh_token("anything")

    def test_ensure_configured(self, issuer):
        issuer.ensure_configured()
        with pytest.raises(ConfigurationError):
            TokenIssuer(ACCESS_SECRET, None).ensure_configured()
