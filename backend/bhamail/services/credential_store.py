"""Persistence of users, mail accounts and refresh-token sessions.

Every mutation commits before returning. SQLAlchemy failures roll the
session back and surface as ``StorageUnavailableError`` so callers only see
the application error hierarchy.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from bhamail.core.config import settings
from bhamail.core.exceptions import ConflictError, StorageUnavailableError
from bhamail.core.logging import get_logger
from bhamail.models.account import Account
from bhamail.models.base import utcnow
from bhamail.models.user import User
from bhamail.models.user_session import UserSession
from bhamail.utils.email import email_domain, normalize_email

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Columns update_user_fields may touch
UPDATABLE_USER_FIELDS = frozenset(
    {
        "password_hash",
        "two_factor_secret",
        "two_factor_enabled",
        "first_name",
        "last_name",
        "role",
        "phone",
        "avatar_url",
        "timezone",
        "language",
        "quota_bytes",
        "used_bytes",
        "is_active",
        "last_login_at",
    }
)


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class CredentialStore:
    """Async data access for authentication state.

    Attributes:
        session: Async SQLAlchemy session owned by the caller
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        """Roll back and translate database errors raised inside the block."""
        try:
            yield
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Database operation failed",
                extra={
                    "context": {
                        "action": action,
                        "status": "failed",
                        "error_type": type(e).__name__,
                    }
                },
            )
            raise StorageUnavailableError() from e

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def find_user_by_email(self, email: str) -> User | None:
        normalized_email = normalize_email(email)
        if not normalized_email:
            return None
        async with self._guard("find_user_by_email"):
            result = await self.session.execute(
                select(User).where(User.email == normalized_email)
            )
            return result.scalar_one_or_none()

    async def find_user_by_id(self, user_id: uuid.UUID | str) -> User | None:
        """Load a user by id; malformed ids simply find nothing."""
        parsed = _as_uuid(user_id)
        if parsed is None:
            return None
        async with self._guard("find_user_by_id"):
            result = await self.session.execute(select(User).where(User.id == parsed))
            return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        **fields: Any,
    ) -> User:
        """Insert a user and its primary mail account in one transaction.

        Args:
            email: Login address; normalized before storage
            password_hash: bcrypt hash of the password
            first_name: Given name
            last_name: Family name
            **fields: Optional user columns (role, timezone, quota_bytes, ...)

        Returns:
            The persisted user

        Raises:
            ConflictError: A user with this email already exists
            StorageUnavailableError: Any other database failure
        """
        normalized_email = normalize_email(email)
        unknown = set(fields) - UPDATABLE_USER_FIELDS
        if unknown:
            raise TypeError(f"Unknown user fields: {sorted(unknown)}")

        fields.setdefault("quota_bytes", settings.DEFAULT_QUOTA_BYTES)
        user = User(
            email=normalized_email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            **fields,
        )
        account = Account(
            email=normalized_email,
            domain=email_domain(normalized_email),
            is_primary=True,
        )
        user.accounts.append(account)

        try:
            async with self._guard("create_user"):
                self.session.add(user)
                await self.session.commit()
                await self.session.refresh(user)
        except StorageUnavailableError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise ConflictError("User already exists") from e.__cause__
            raise

        logger.info(
            "User persisted with primary account",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "account_id": str(account.id),
                    "action": "create_user",
                    "status": "success",
                }
            },
        )
        return user

    async def update_user_fields(
        self, user_id: uuid.UUID | str, **partial: Any
    ) -> User | None:
        """Apply a partial update to a user.

        Returns:
            The updated user, or None if no such user exists
        """
        unknown = set(partial) - UPDATABLE_USER_FIELDS
        if unknown:
            raise TypeError(f"Unknown user fields: {sorted(unknown)}")

        user = await self.find_user_by_id(user_id)
        if user is None:
            return None

        async with self._guard("update_user_fields"):
            for name, value in partial.items():
                setattr(user, name, value)
            await self.session.commit()
            await self.session.refresh(user)
        return user

    async def list_users(self, skip: int = 0, limit: int = 20) -> list[User]:
        async with self._guard("list_users"):
            result = await self.session.execute(
                select(User).order_by(User.created_at, User.email).offset(skip).limit(limit)
            )
            return list(result.scalars().all())

    async def count_users(self) -> int:
        async with self._guard("count_users"):
            result = await self.session.execute(select(func.count()).select_from(User))
            return int(result.scalar_one())

    async def user_stats(self) -> dict[str, int]:
        """Aggregate user counts and storage across the users table."""
        query = select(
            func.count(User.id),
            func.count(User.id).filter(User.is_active.is_(True)),
            func.coalesce(func.sum(User.used_bytes), 0),
        )
        async with self._guard("user_stats"):
            total, active, storage = (await self.session.execute(query)).one()
        return {
            "total_users": int(total),
            "active_users": int(active),
            "storage_used_bytes": int(storage),
        }

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(
        self, user_id: uuid.UUID | str, token_hash: str, expires_at: datetime
    ) -> uuid.UUID:
        """Record a refresh-token session and return its id.

        The user's expired sessions are deleted in the same transaction.
        """
        parsed = _as_uuid(user_id)
        user_session = UserSession(
            user_id=parsed,
            refresh_token_hash=token_hash,
            expires_at=expires_at,
        )
        async with self._guard("create_session"):
            await self.session.execute(
                delete(UserSession).where(
                    UserSession.user_id == parsed,
                    UserSession.expires_at <= utcnow(),
                ).execution_options(synchronize_session=False)
            )
            self.session.add(user_session)
            await self.session.commit()
        return user_session.id

    async def find_sessions_by_user(
        self, user_id: uuid.UUID | str, include_expired: bool = False
    ) -> list[UserSession]:
        """Return the user's sessions, newest first.

        Expired sessions are excluded unless ``include_expired`` is set.
        """
        parsed = _as_uuid(user_id)
        if parsed is None:
            return []
        query = select(UserSession).where(UserSession.user_id == parsed)
        if not include_expired:
            query = query.where(UserSession.expires_at > utcnow())
        async with self._guard("find_sessions_by_user"):
            result = await self.session.execute(
                query.order_by(UserSession.created_at.desc())
            )
            return list(result.scalars().all())

    async def delete_session(self, session_id: uuid.UUID | str) -> None:
        parsed = _as_uuid(session_id)
        if parsed is None:
            return
        async with self._guard("delete_session"):
            await self.session.execute(
                delete(UserSession).where(UserSession.id == parsed)
            )
            await self.session.commit()

    async def delete_all_sessions_for_user(self, user_id: uuid.UUID | str) -> int:
        """Delete every session of a user and return how many were removed."""
        parsed = _as_uuid(user_id)
        if parsed is None:
            return 0
        async with self._guard("delete_all_sessions_for_user"):
            result = await self.session.execute(
                delete(UserSession).where(UserSession.user_id == parsed)
            )
            await self.session.commit()
        return result.rowcount or 0


__all__ = ["UPDATABLE_USER_FIELDS", "CredentialStore"]
