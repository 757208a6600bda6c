"""Enumerations shared by models and schemas."""

from enum import Enum


class UserRole(str, Enum):
    """Role assigned to a user.

    Attributes:
        USER: Regular mailbox owner
        ADMIN: May list, activate and deactivate other users
    """

    USER = "user"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value


__all__ = ["UserRole"]
