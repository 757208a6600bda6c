"""Base Pydantic schemas with common patterns.

Wire format is camelCase; Python attributes stay snake_case. Schemas accept
either spelling on input and emit camelCase on output.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bhamail.core.security import PasswordComplexityError, is_password_complex_enough


def validate_password_policy(value: str) -> str:
    """Field validator body shared by every schema that sets a password."""
    try:
        is_password_complex_enough(value, raise_error=True)
    except PasswordComplexityError as e:
        raise ValueError(e.message) from e
    return value


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


class MessageResponse(BaseSchema):
    """Simple message response schema."""

    message: str = Field(
        ...,
        description="Response message",
        examples=["Logged out successfully"],
    )


class ErrorDetail(BaseSchema):
    field: str
    message: str


class ErrorResponse(BaseSchema):
    """Standard error response schema."""

    error: str = Field(
        ...,
        description="Short, client-safe error message",
        examples=["Invalid credentials"],
    )
    details: list[ErrorDetail] | None = Field(
        default=None,
        description="Per-field validation failures",
    )


T = TypeVar("T")


class PaginatedResponse(BaseSchema, Generic[T]):
    """Generic offset-paginated response wrapper."""

    items: list[T] = Field(..., description="Items in the current page")
    total: int = Field(..., ge=0, description="Total number of items", examples=[100])
    skip: int = Field(..., ge=0, description="Items skipped", examples=[0])
    limit: int = Field(..., ge=1, description="Page size", examples=[20])

    @classmethod
    def create(
        cls,
        items: list[T],
        total: int,
        skip: int,
        limit: int,
    ) -> PaginatedResponse[T]:
        return cls(items=items, total=total, skip=skip, limit=limit)


__all__ = [
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    "PaginatedResponse",
    "validate_password_policy",
]
