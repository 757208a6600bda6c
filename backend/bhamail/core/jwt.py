"""JWT access and refresh token issuing and verification.

Uses python-jose with HS256. Access and refresh tokens are signed with
separate secrets and carry a ``type`` claim, so neither can be replayed as
the other. Issuing is stateless: whether a refresh token is still live is
decided by the session table, not here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from bhamail.core.config import Settings, settings
from bhamail.core.exceptions import ConfigurationError, InvalidTokenError
from bhamail.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by a verified access token."""

    user_id: str
    email: str


class TokenIssuer:
    """Issues and verifies signed access/refresh tokens.

    Secrets are checked when a token is issued or verified rather than at
    construction, so a misconfigured deployment fails the request with
    ``ConfigurationError`` instead of failing to import.

    Examples:
        >>> issuer = TokenIssuer("access-secret", "refresh-secret")
        >>> token = issuer.issue_refresh_token("user-123")
        >>> issuer.verify_refresh_token(token)
        'user-123'
    """

    def __init__(
        self,
        access_secret: str | None,
        refresh_secret: str | None,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=30),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> TokenIssuer:
        """Build an issuer from application settings."""
        config = config or settings
        return cls(
            access_secret=config.JWT_SECRET,
            refresh_secret=config.JWT_REFRESH_SECRET,
            algorithm=config.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    def ensure_configured(self) -> None:
        """Raise ``ConfigurationError`` unless both signing secrets are set."""
        self._secret_for(ACCESS_TOKEN_TYPE)
        self._secret_for(REFRESH_TOKEN_TYPE)

    def _secret_for(self, token_type: str) -> str:
        secret = (
            self._access_secret
            if token_type == ACCESS_TOKEN_TYPE
            else self._refresh_secret
        )
        if not secret:
            logger.error(
                "Token signing secret is not configured",
                extra={
                    "context": {
                        "action": "token_config_check",
                        "token_type": token_type,
                        "status": "failed",
                    }
                },
            )
            raise ConfigurationError("JWT configuration error")
        return secret

    def _encode(self, claims: dict[str, Any], token_type: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret_for(token_type), algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str) -> dict[str, Any]:
        secret = self._secret_for(token_type)
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidTokenError(f"Invalid {token_type} token") from e

        if payload.get("type") != token_type or not payload.get("sub"):
            raise InvalidTokenError(f"Invalid {token_type} token")
        return payload

    def issue_access_token(self, user_id: uuid.UUID | str, email: str) -> str:
        """Create a short-lived access token for ``user_id``."""
        return self._encode(
            {"sub": str(user_id), "email": email},
            ACCESS_TOKEN_TYPE,
            self.access_ttl,
        )

    def issue_refresh_token(self, user_id: uuid.UUID | str) -> str:
        """Create a refresh token for ``user_id``.

        A random ``jti`` makes every refresh token unique, so two logins in
        the same second still yield distinguishable sessions.
        """
        return self._encode(
            {"sub": str(user_id), "jti": uuid.uuid4().hex},
            REFRESH_TOKEN_TYPE,
            self.refresh_ttl,
        )

    def verify_refresh_token(self, token: str) -> str:
        """Check signature and expiry of a refresh token.

        Returns:
            The user id the token was issued for.

        Raises:
            InvalidTokenError: Signature, expiry or type check failed.
            ConfigurationError: The refresh secret is not set.
        """
        return str(self._decode(token, REFRESH_TOKEN_TYPE)["sub"])

    def verify_access_token(self, token: str) -> AccessClaims:
        """Check signature and expiry of an access token."""
        payload = self._decode(token, ACCESS_TOKEN_TYPE)
        return AccessClaims(user_id=str(payload["sub"]), email=payload.get("email", ""))


__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "AccessClaims",
    "TokenIssuer",
]
