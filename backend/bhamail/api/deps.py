"""API dependencies.

Common dependencies for API routes: database session, service
construction, bearer authentication, role guards and pagination.
"""

from typing import Annotated

from fastapi import Depends, Header, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bhamail.core.exceptions import AuthError, ForbiddenError
from bhamail.core.jwt import TokenIssuer
from bhamail.core.totp import TotpVerifier
from bhamail.db.session import get_db
from bhamail.models.enums import UserRole
from bhamail.models.user import User
from bhamail.services.auth_service import AuthService
from bhamail.services.credential_store import CredentialStore
from bhamail.services.notifications import Mailer, get_mailer
from bhamail.services.reset_tickets import ResetTicketStore, get_reset_ticket_store
from bhamail.services.user_service import UserService

# =============================================================================
# Database Session Dependency
# =============================================================================

DBSession = Annotated[AsyncSession, Depends(get_db)]
"""Type alias for database session dependency injection."""


# =============================================================================
# Collaborator Dependencies
# =============================================================================


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings()


def get_totp_verifier() -> TotpVerifier:
    return TotpVerifier.from_settings()


Tokens = Annotated[TokenIssuer, Depends(get_token_issuer)]
Totp = Annotated[TotpVerifier, Depends(get_totp_verifier)]
ResetTickets = Annotated[ResetTicketStore, Depends(get_reset_ticket_store)]
Notifier = Annotated[Mailer, Depends(get_mailer)]


def get_auth_service(
    db: DBSession,
    tokens: Tokens,
    totp: Totp,
    reset_tickets: ResetTickets,
    mailer: Notifier,
) -> AuthService:
    return AuthService(db, tokens, totp, reset_tickets, mailer)


def get_user_service(db: DBSession) -> UserService:
    return UserService(db)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


# =============================================================================
# Pagination Dependencies
# =============================================================================


class PaginationParams(BaseModel):
    """Pagination parameters for list endpoints.

    Attributes:
        skip: Number of records to skip (offset).
        limit: Maximum number of records to return.
    """

    skip: int = Field(default=0, ge=0, description="Number of records to skip")
    limit: int = Field(
        default=20, ge=1, le=100, description="Maximum number of records to return"
    )


def get_pagination_params(
    skip: Annotated[int, Query(ge=0, description="Number of records to skip")] = 0,
    limit: Annotated[
        int, Query(ge=1, le=100, description="Maximum number of records to return")
    ] = 20,
) -> PaginationParams:
    return PaginationParams(skip=skip, limit=limit)


Pagination = Annotated[PaginationParams, Depends(get_pagination_params)]


# =============================================================================
# Authentication Dependencies
# =============================================================================


def _bearer_token(authorization: str | None) -> str:
    if authorization is None:
        raise AuthError("Not authenticated")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Invalid authentication credentials")
    return token


async def get_current_user(
    db: DBSession,
    tokens: Tokens,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the caller from an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthError: Missing/malformed header, invalid or expired token,
            unknown or disabled user
        ConfigurationError: The access-token secret is not set
    """
    token = _bearer_token(authorization)
    claims = tokens.verify_access_token(token)

    user = await CredentialStore(db).find_user_by_id(claims.user_id)
    if user is None:
        raise AuthError("User not found")
    if not user.is_active:
        raise AuthError("Account is disabled")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
"""Type alias for required current user dependency."""


def require_role(*roles: UserRole):
    """Build a dependency that admits only users holding one of ``roles``."""
    allowed = {role.value for role in roles}

    async def _check_role(current_user: CurrentUser) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return _check_role


AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]


__all__ = [
    "AdminUser",
    "AuthServiceDep",
    "CurrentUser",
    "DBSession",
    "Pagination",
    "PaginationParams",
    "UserServiceDep",
    "get_auth_service",
    "get_current_user",
    "get_db",
    "get_pagination_params",
    "get_token_issuer",
    "get_totp_verifier",
    "get_user_service",
    "require_role",
]
