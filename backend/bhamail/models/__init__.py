"""SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from bhamail.models.account import Account
from bhamail.models.base import GUID, Base, CreatedAtMixin, TimestampMixin, UUIDMixin
from bhamail.models.enums import UserRole
from bhamail.models.user import User
from bhamail.models.user_session import UserSession

__all__ = [
    "GUID",
    "Account",
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserRole",
    "UserSession",
]
