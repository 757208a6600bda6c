"""Refresh-token session model.

A row exists for every refresh token that is still honoured. Deleting the
row revokes the token even though its signature stays valid until expiry.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bhamail.models.base import GUID, Base, CreatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from bhamail.models.user import User


class UserSession(UUIDMixin, CreatedAtMixin, Base):
    """A live refresh-token session.

    Attributes:
        user_id: Session owner
        refresh_token_hash: SHA-256 hex digest of the refresh token; the
            plaintext token is never stored
        expires_at: Same expiry as the refresh token itself
    """

    __tablename__ = "user_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    refresh_token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    user: Mapped[User] = relationship("User", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<UserSession(id={self.id}, user_id={self.user_id}, expires_at={self.expires_at})>"


__all__ = ["UserSession"]
