"""Password and token hashing utilities.

Passwords are hashed with bcrypt (cost factor from ``settings.BCRYPT_ROUNDS``,
12 by default). Refresh tokens are high-entropy JWTs longer than bcrypt's
72-byte input limit, so they are stored as SHA-256 digests instead and
compared in constant time.

Logging:
    Hashing and verification are logged at DEBUG level without the input.
    Complexity failures are logged as warnings with the number of missing
    requirements only.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import re

import bcrypt

from bhamail.core.config import settings
from bhamail.core.exceptions import ValidationError
from bhamail.core.logging import get_logger

logger = get_logger(__name__)

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72

PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARACTERS = "@$!%*?&#^(),.\":{}|<>"
_SPECIAL_CHARACTER_PATTERN = re.compile(
    "[" + re.escape(PASSWORD_SPECIAL_CHARACTERS) + "]"
)


class PasswordComplexityError(ValidationError):
    """Raised when a password does not meet the complexity policy."""

    default_message = "Password does not meet complexity requirements"


def _prepare_password(password: str) -> bytes:
    """Encode password and truncate it to bcrypt's 72-byte limit."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password using bcrypt.

    Each hash uses a fresh salt, so the same password produces different
    hashes.

    Args:
        password: Plain text password to hash
        rounds: bcrypt cost factor. Defaults to ``settings.BCRYPT_ROUNDS``.

    Returns:
        Bcrypt hash string (60 characters, e.g. ``$2b$12$...``)
    """
    cost = rounds or settings.BCRYPT_ROUNDS

    logger.debug(
        "Password hashing operation",
        extra={
            "context": {
                "action": "hash_password",
                "rounds": cost,
                "truncated": len(password.encode("utf-8")) > BCRYPT_MAX_BYTES,
            }
        },
    )

    salt = bcrypt.gensalt(rounds=cost)
    hashed: str = bcrypt.hashpw(_prepare_password(password), salt).decode("utf-8")
    return hashed


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against a bcrypt hash.

    Uses bcrypt's timing-safe comparison. Malformed or missing hashes never
    verify.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored bcrypt hash to compare against

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        return False

    try:
        result: bool = bcrypt.checkpw(
            _prepare_password(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError as e:
        logger.warning(
            "Password verification failed with malformed hash",
            extra={
                "context": {
                    "action": "verify_password",
                    "error_type": type(e).__name__,
                    "status": "failed",
                }
            },
        )
        return False

    logger.debug(
        "Password verification completed",
        extra={"context": {"action": "verify_password", "result": result}},
    )
    return result


async def hash_password_async(password: str) -> str:
    """Hash a password in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(
    plain_password: str, hashed_password: str | None
) -> bool:
    """Verify a password in a worker thread."""
    return await asyncio.to_thread(verify_password, plain_password, hashed_password)


def is_password_complex_enough(
    password: str,
    min_length: int = PASSWORD_MIN_LENGTH,
    raise_error: bool = False,
) -> bool:
    """Validate password complexity requirements.

    Requirements:
    - Minimum length (default: 8 characters)
    - At least one lowercase letter
    - At least one uppercase letter
    - At least one number
    - At least one special character from ``PASSWORD_SPECIAL_CHARACTERS``

    Args:
        password: Password to validate
        min_length: Minimum required length
        raise_error: If True, raises PasswordComplexityError on failure

    Returns:
        True if password meets complexity requirements, False otherwise

    Raises:
        PasswordComplexityError: If raise_error=True and validation fails

    Examples:
        >>> is_password_complex_enough("Abcd123!")
        True
        >>> is_password_complex_enough("short")
        False
    """
    errors = []

    if len(password) < min_length:
        errors.append(f"at least {min_length} characters")
    if not re.search(r"[a-z]", password):
        errors.append("at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("at least one number")
    if not _SPECIAL_CHARACTER_PATTERN.search(password):
        errors.append("at least one special character")

    if errors:
        logger.warning(
            "Password complexity validation failed",
            extra={
                "context": {
                    "action": "password_complexity_check",
                    "status": "failed",
                    "missing_requirements": len(errors),
                }
            },
        )
        if raise_error:
            raise PasswordComplexityError(f"Password must contain {', '.join(errors)}")
        return False

    return True


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest stored for a refresh token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str) -> bool:
    """Compare a presented token with a stored digest in constant time."""
    return hmac.compare_digest(hash_token(token), token_hash)


__all__ = [
    "PASSWORD_SPECIAL_CHARACTERS",
    "PasswordComplexityError",
    "hash_password",
    "hash_password_async",
    "hash_token",
    "is_password_complex_enough",
    "token_matches",
    "verify_password",
    "verify_password_async",
]
