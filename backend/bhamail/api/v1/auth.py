"""Authentication API router.

Signup, login, token refresh, logout, TOTP two-factor management,
password reset and the caller's profile.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from bhamail.api.deps import AuthServiceDep, CurrentUser
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
from bhamail.schemas.base import ErrorResponse, MessageResponse
from bhamail.schemas.user import UserProfile
from bhamail.services.auth_service import AuthResult

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If the email exists, a reset link has been sent"


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserSummary.model_validate(result.user),
        token=result.access_token,
        refresh_token=result.refresh_token,
    )


# =============================================================================
# Session Endpoints
# =============================================================================


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    responses={409: {"model": ErrorResponse, "description": "User already exists"}},
)
async def signup(body: SignupRequest, auth: AuthServiceDep) -> AuthResponse:
    result = await auth.signup(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse, summary="Log in")
async def login(body: LoginRequest, auth: AuthServiceDep) -> AuthResponse:
    result = await auth.login(body.email, body.password, body.totp_code)
    return _auth_response(result)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange a refresh token for a new access token",
)
async def refresh(body: RefreshRequest, auth: AuthServiceDep) -> TokenResponse:
    token = await auth.refresh(body.refresh_token)
    return TokenResponse(token=token)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(
    current_user: CurrentUser,
    auth: AuthServiceDep,
    body: LogoutRequest | None = None,
) -> MessageResponse:
    """End the session of ``refreshToken``, or every session when omitted."""
    await auth.logout(current_user.id, body.refresh_token if body else None)
    return MessageResponse(message="Logged out successfully")


# =============================================================================
# Two-Factor Endpoints
# =============================================================================


@router.post(
    "/setup-2fa",
    response_model=TwoFactorSetupResponse,
    summary="Start TOTP enrollment",
)
async def setup_two_factor(
    current_user: CurrentUser, auth: AuthServiceDep
) -> TwoFactorSetupResponse:
    enrollment = await auth.setup_two_factor(current_user.id, current_user.email)
    return TwoFactorSetupResponse(
        secret=enrollment.secret,
        qr_code=enrollment.qr_code,
        manual_entry_key=enrollment.manual_entry_key,
    )


@router.post("/verify-2fa", response_model=MessageResponse, summary="Enable 2FA")
async def verify_two_factor(
    body: VerifyTwoFactorRequest, current_user: CurrentUser, auth: AuthServiceDep
) -> MessageResponse:
    await auth.verify_two_factor(current_user.id, body.totp_code)
    return MessageResponse(message="2FA enabled successfully")


@router.post("/disable-2fa", response_model=MessageResponse, summary="Disable 2FA")
async def disable_two_factor(
    body: DisableTwoFactorRequest, current_user: CurrentUser, auth: AuthServiceDep
) -> MessageResponse:
    await auth.disable_two_factor(current_user.id, body.password, body.totp_code)
    return MessageResponse(message="2FA disabled successfully")


# =============================================================================
# Password Reset Endpoints
# =============================================================================


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset link",
)
async def forgot_password(
    body: ForgotPasswordRequest, auth: AuthServiceDep
) -> MessageResponse:
    """Always answers with the same message whether or not the email exists."""
    await auth.forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password with a reset token",
)
async def reset_password(
    body: ResetPasswordRequest, auth: AuthServiceDep
) -> MessageResponse:
    await auth.reset_password(body.token, body.password)
    return MessageResponse(message="Password reset successfully")


# =============================================================================
# Profile
# =============================================================================


@router.get("/me", response_model=UserProfile, summary="Current user profile")
async def me(current_user: CurrentUser, auth: AuthServiceDep) -> UserProfile:
    user = await auth.get_profile(current_user.id)
    return UserProfile.model_validate(user)
