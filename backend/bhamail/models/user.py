"""User model: the authentication identity and its profile."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bhamail.models.base import Base, TimestampMixin, UUIDMixin
from bhamail.models.enums import UserRole

if TYPE_CHECKING:
    from bhamail.models.account import Account
    from bhamail.models.user_session import UserSession


class User(UUIDMixin, TimestampMixin, Base):
    """A registered BhaMail user.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        email: Unique, lowercased login address
        password_hash: bcrypt hash of the user's password
        two_factor_secret: Base32 TOTP secret; set during 2FA setup and
            cleared when 2FA is disabled
        two_factor_enabled: Whether login requires a TOTP code
        role: ``user`` or ``admin``
        quota_bytes: Mailbox quota
        used_bytes: Storage used so far
        is_active: Disabled users cannot log in or refresh tokens
        last_login_at: Time of the last successful login

    Security:
        - password_hash and two_factor_secret never leave the service layer
        - Email addresses are normalized to lowercase before storage
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Two-factor authentication
    two_factor_secret: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER.value,
        server_default=UserRole.USER.value,
    )
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default="UTC", server_default="UTC"
    )
    language: Mapped[str] = mapped_column(
        String(16), nullable=False, default="en", server_default="en"
    )

    # Storage
    quota_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    used_bytes: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )

    # Account status
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    accounts: Mapped[list[Account]] = relationship(
        "Account",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sessions: Mapped[list[UserSession]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role})>"


__all__ = ["User"]
