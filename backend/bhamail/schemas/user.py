"""Schemas for profile and admin user routes."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Required at runtime for Pydantic
from uuid import UUID  # noqa: TC003 - Required at runtime for Pydantic

from pydantic import Field, field_validator

from bhamail.schemas.base import BaseSchema, validate_password_policy


class UserProfile(BaseSchema):
    """Full profile of a user, as returned by /auth/me and the admin routes.

    Excludes password_hash and two_factor_secret.
    """

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    phone: str | None = None
    avatar_url: str | None = None
    timezone: str
    language: str
    quota_bytes: int
    used_bytes: int
    two_factor_enabled: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: datetime | None = None


class ProfileUpdateRequest(BaseSchema):
    """Partial profile update. Omitted fields are left unchanged."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    avatar_url: str | None = Field(default=None, max_length=500)
    timezone: str | None = Field(default=None, min_length=1, max_length=64)
    language: str | None = Field(default=None, min_length=2, max_length=16)


class ChangePasswordRequest(BaseSchema):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        return validate_password_policy(v)


class UserStats(BaseSchema):
    """Aggregate counts for the admin dashboard."""

    total_users: int
    active_users: int
    storage_used_bytes: int


__all__ = [
    "ChangePasswordRequest",
    "ProfileUpdateRequest",
    "UserProfile",
    "UserStats",
]
