"""Request and response schemas for the authentication routes."""

from __future__ import annotations

from uuid import UUID  # noqa: TC003 - Required at runtime for Pydantic

from pydantic import EmailStr, Field, field_validator

from bhamail.schemas.base import BaseSchema, validate_password_policy


class SignupRequest(BaseSchema):
    """Body of POST /auth/signup."""

    email: EmailStr = Field(..., max_length=255, examples=["jane@bhamail.com"])
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        return validate_password_policy(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class LoginRequest(BaseSchema):
    """Body of POST /auth/login. ``totpCode`` is needed once 2FA is on."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    totp_code: str | None = Field(default=None, max_length=16)


class RefreshRequest(BaseSchema):
    refresh_token: str | None = None


class LogoutRequest(BaseSchema):
    """Without ``refreshToken`` every session of the caller is ended."""

    refresh_token: str | None = None


class VerifyTwoFactorRequest(BaseSchema):
    totp_code: str | None = Field(default=None, max_length=16)


class DisableTwoFactorRequest(BaseSchema):
    password: str | None = Field(default=None, max_length=128)
    totp_code: str | None = Field(default=None, max_length=16)


class ForgotPasswordRequest(BaseSchema):
    email: EmailStr


class ResetPasswordRequest(BaseSchema):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        return validate_password_policy(v)


class UserSummary(BaseSchema):
    """User fields returned alongside tokens."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    two_factor_enabled: bool = False


class AuthResponse(BaseSchema):
    """Signup and login response."""

    user: UserSummary
    token: str = Field(..., description="Access token")
    refresh_token: str


class TokenResponse(BaseSchema):
    token: str = Field(..., description="New access token")


class TwoFactorSetupResponse(BaseSchema):
    secret: str
    qr_code: str = Field(..., description="PNG data URL of the provisioning QR code")
    manual_entry_key: str


__all__ = [
    "AuthResponse",
    "DisableTwoFactorRequest",
    "ForgotPasswordRequest",
    "LoginRequest",
    "LogoutRequest",
    "RefreshRequest",
    "ResetPasswordRequest",
    "SignupRequest",
    "TokenResponse",
    "TwoFactorSetupResponse",
    "UserSummary",
    "VerifyTwoFactorRequest",
]
