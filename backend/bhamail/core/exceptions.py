"""Application error hierarchy.

Every failure the services raise is an ``AppError`` subclass. The HTTP layer
maps each class to a status code (see ``bhamail.api.errors``); services never
deal with status codes themselves.
"""

from __future__ import annotations

# =============================================================================
# Base class
# =============================================================================


class AppError(Exception):
    """Base class for all application errors.

    Attributes:
        message: Short, client-safe description of the failure.
    """

    default_message = "Application error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Client errors
# =============================================================================


class BadRequestError(AppError):
    """The request is well-formed but cannot be honoured in the current state."""

    default_message = "Bad request"


class ValidationError(BadRequestError):
    """Input is missing or malformed (weak password, missing field)."""

    default_message = "Validation failed"


class AuthError(AppError):
    """Authentication failed.

    Messages stay generic where they could reveal whether an account exists.
    """

    default_message = "Invalid credentials"


class InvalidTokenError(AuthError):
    """A JWT failed signature, expiry or type checks."""

    default_message = "Invalid token"


class ForbiddenError(AppError):
    """The caller is authenticated but lacks the required role."""

    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    """A referenced user or resource does not exist."""

    default_message = "Not found"


class ConflictError(AppError):
    """The resource already exists."""

    default_message = "Resource already exists"


# =============================================================================
# Server errors
# =============================================================================


class ServerError(AppError):
    """A downstream dependency failed."""

    default_message = "Internal server error"


class ConfigurationError(ServerError):
    """Server-side configuration is missing (e.g. token signing secrets).

    Fatal and not retryable; operators need to fix the deployment.
    """

    default_message = "Server configuration error"


class StorageUnavailableError(ServerError):
    """The relational store or the key-value store could not be reached."""

    default_message = "Storage unavailable"


__all__ = [
    "AppError",
    "AuthError",
    "BadRequestError",
    "ConfigurationError",
    "ConflictError",
    "ForbiddenError",
    "InvalidTokenError",
    "NotFoundError",
    "ServerError",
    "StorageUnavailableError",
    "ValidationError",
]
