"""Pydantic request/response schemas."""

from bhamail.schemas.auth import (
    AuthResponse,
    DisableTwoFactorRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    ResetPasswordRequest,
    SignupRequest,
    TokenResponse,
    TwoFactorSetupResponse,
    UserSummary,
    VerifyTwoFactorRequest,
)
from bhamail.schemas.base import (
    BaseSchema,
    ErrorResponse,
    MessageResponse,
    PaginatedResponse,
)
from bhamail.schemas.user import (
    ChangePasswordRequest,
    ProfileUpdateRequest,
    UserProfile,
    UserStats,
)

__all__ = [
    "AuthResponse",
    "BaseSchema",
    "ChangePasswordRequest",
    "DisableTwoFactorRequest",
    "ErrorResponse",
    "ForgotPasswordRequest",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "PaginatedResponse",
    "ProfileUpdateRequest",
    "RefreshRequest",
    "ResetPasswordRequest",
    "SignupRequest",
    "TokenResponse",
    "TwoFactorSetupResponse",
    "UserProfile",
    "UserStats",
    "UserSummary",
    "VerifyTwoFactorRequest",
]
