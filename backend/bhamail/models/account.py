"""Mail account model.

Every user owns exactly one primary account, created at signup with the
same address as the login email.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bhamail.models.base import GUID, Base, CreatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from bhamail.models.user import User


class Account(UUIDMixin, CreatedAtMixin, Base):
    """A mail account owned by a user.

    Attributes:
        user_id: Owning user
        email: Account address
        domain: Domain part of ``email``
        is_primary: True for the account created at signup
    """

    __tablename__ = "accounts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    is_primary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    user: Mapped[User] = relationship("User", back_populates="accounts")

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email={self.email!r}, primary={self.is_primary})>"


__all__ = ["Account"]
