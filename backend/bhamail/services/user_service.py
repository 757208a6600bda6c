"""User profile and administration service.

Provides profile updates, password changes and the admin operations for
listing, deactivating and reactivating users.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bhamail.core.exceptions import (
    AuthError,
    BadRequestError,
    NotFoundError,
    ValidationError,
)
from bhamail.core.logging import get_logger
from bhamail.core.security import (
    hash_password_async,
    is_password_complex_enough,
    verify_password_async,
)
from bhamail.services.credential_store import CredentialStore

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from bhamail.models.user import User

# Profile fields a user may change about themselves
PROFILE_FIELDS = frozenset(
    {"first_name", "last_name", "phone", "avatar_url", "timezone", "language"}
)


class UserService:
    """Service layer for user management operations.

    Logging:
        - Logs profile updates with the names of changed fields
        - Logs password changes and account status changes as security events
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user service.

        Args:
            session: Async SQLAlchemy session
        """
        self.store = CredentialStore(session)
        self.logger = get_logger(__name__)

    async def get_user(self, user_id: uuid.UUID | str) -> User:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: uuid.UUID | str, **changes: Any) -> User:
        """Apply the supplied profile fields, leaving the rest untouched.

        ``None`` values mean "not supplied" and are skipped.

        Raises:
            ValidationError: A field outside the profile was supplied
            NotFoundError: No such user
        """
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        supplied = {name: value for name, value in changes.items() if value is not None}
        if not supplied:
            return await self.get_user(user_id)

        user = await self.store.update_user_fields(user_id, **supplied)
        if user is None:
            raise NotFoundError("User not found")

        self.logger.info(
            "Profile updated",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "update_profile",
                    "fields": sorted(supplied),
                    "status": "success",
                }
            },
        )
        return user

    async def change_password(
        self, user_id: uuid.UUID | str, current_password: str, new_password: str
    ) -> None:
        """Change a password after re-checking the current one.

        Every session of the user is revoked, so other devices must log in
        again.

        Raises:
            NotFoundError: No such user
            AuthError: Current password is wrong
            ValidationError: New password fails the complexity policy
        """
        user = await self.get_user(user_id)

        if not await verify_password_async(current_password, user.password_hash):
            self.logger.warning(
                "Password change failed: invalid current password",
                extra={
                    "context": {
                        "user_id": str(user.id),
                        "action": "password_change",
                        "status": "failed",
                        "reason": "invalid_current_password",
                    }
                },
            )
            raise AuthError("Current password is incorrect")

        is_password_complex_enough(new_password, raise_error=True)

        password_hash = await hash_password_async(new_password)
        await self.store.update_user_fields(user.id, password_hash=password_hash)
        revoked = await self.store.delete_all_sessions_for_user(user.id)

        self.logger.info(
            "Password changed successfully",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "password_change",
                    "sessions_revoked": revoked,
                    "status": "success",
                }
            },
        )

    async def set_active(
        self,
        user_id: uuid.UUID | str,
        active: bool,
        actor_id: uuid.UUID | str | None = None,
    ) -> User:
        """Activate or deactivate a user.

        Deactivation also revokes every session of the user. An actor may
        not deactivate their own account.

        Raises:
            NotFoundError: No such user
            BadRequestError: ``actor_id`` is the user being deactivated
        """
        user = await self.get_user(user_id)
        if not active and actor_id is not None and str(actor_id) == str(user.id):
            raise BadRequestError("Cannot deactivate your own account")
        user = await self.store.update_user_fields(user.id, is_active=active) or user

        revoked = 0
        if not active:
            revoked = await self.store.delete_all_sessions_for_user(user.id)

        self.logger.info(
            "User account status changed",
            extra={
                "context": {
                    "user_id": str(user.id),
                    "action": "activate_user" if active else "deactivate_user",
                    "sessions_revoked": revoked,
                    "status": "success",
                }
            },
        )
        return user

    async def list_users(self, skip: int = 0, limit: int = 20) -> tuple[list[User], int]:
        """Return one page of users and the total count."""
        users = await self.store.list_users(skip=skip, limit=limit)
        total = await self.store.count_users()
        return users, total

    async def get_stats(self) -> dict[str, int]:
        """User totals for the admin dashboard."""
        return await self.store.user_stats()


__all__ = ["PROFILE_FIELDS", "UserService"]
