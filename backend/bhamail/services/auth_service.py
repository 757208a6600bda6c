"""Authentication and session lifecycle.

Orchestrates the credential store, token issuer, TOTP verifier,
reset-ticket store and mailer:

    Anonymous --signup/login--> Authenticated --refresh--> Refreshed
    Authenticated/Refreshed --logout--> LoggedOut

Every failure is raised as an ``AppError`` subclass; the HTTP layer maps
those to status codes.

Logging:
    - Signup, login, refresh and logout outcomes with user id and status
    - 2FA enrollment changes and password resets as security events
    - Email addresses, passwords, codes and tokens are never logged
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bhamail.core.exceptions import (
    AuthError,
    BadRequestError,
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from bhamail.core.logging import get_logger
from bhamail.core.security import (
    hash_password_async,
    hash_token,
    is_password_complex_enough,
    token_matches,
    verify_password_async,
)
from bhamail.services.credential_store import CredentialStore
from bhamail.utils.email import normalize_email

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from bhamail.core.jwt import TokenIssuer
    from bhamail.core.totp import TotpVerifier
    from bhamail.models.user import User
    from bhamail.services.notifications import Mailer
    from bhamail.services.reset_tickets import ResetTicketStore

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful signup or login."""

    user: User
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TwoFactorEnrollment:
    """Data the client needs to add the account to an authenticator app."""

    secret: str
    qr_code: str
    manual_entry_key: str


class AuthService:
    """Service layer for authentication flows.

    Attributes:
        store: Credential store bound to the request's database session
        tokens: Access/refresh token issuer
        totp: Second-factor verifier
        reset_tickets: Password-reset ticket store
        mailer: Notification mailer
    """

    def __init__(
        self,
        session: AsyncSession,
        token_issuer: TokenIssuer,
        totp: TotpVerifier,
        reset_tickets: ResetTicketStore,
        mailer: Mailer,
    ) -> None:
        self.store = CredentialStore(session)
        self.tokens = token_issuer
        self.totp = totp
        self.reset_tickets = reset_tickets
        self.mailer = mailer
        self.logger = get_logger(__name__)

    def _log(self, level: str, message: str, **context: object) -> None:
        getattr(self.logger, level)(message, extra={"context": context})

    async def _open_session(self, user: User) -> tuple[str, str]:
        """Issue an access/refresh pair and record the refresh session."""
        access_token = self.tokens.issue_access_token(user.id, user.email)
        refresh_token = self.tokens.issue_refresh_token(user.id)
        await self.store.create_session(
            user.id,
            hash_token(refresh_token),
            datetime.now(UTC) + self.tokens.refresh_ttl,
        )
        return access_token, refresh_token

    async def _require_user(self, user_id: uuid.UUID | str) -> User:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # -------------------------------------------------------------------------
    # Signup / login / refresh / logout
    # -------------------------------------------------------------------------

    async def signup(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> AuthResult:
        """Register a user with a primary account and open a session.

        Raises:
            ValidationError: Password fails the complexity policy
            ConflictError: Email already registered
            ConfigurationError: Token secrets are not configured
        """
        normalized_email = normalize_email(email)
        self._log("info", "Signup attempt", action="signup")

        is_password_complex_enough(password, raise_error=True)
        self.tokens.ensure_configured()

        if await self.store.find_user_by_email(normalized_email) is not None:
            self._log("warning", "Signup rejected", action="signup", status="conflict")
            raise ConflictError("User already exists")

        password_hash = await hash_password_async(password)
        user = await self.store.create_user(
            normalized_email, password_hash, first_name, last_name
        )
        access_token, refresh_token = await self._open_session(user)

        try:
            await self.mailer.send_welcome_email(user.email, user.first_name)
        except Exception as e:
            self._log(
                "warning",
                "Welcome email could not be sent",
                action="send_welcome_email",
                user_id=str(user.id),
                status="failed",
                error_type=type(e).__name__,
            )

        self._log("info", "User signed up", action="signup", user_id=str(user.id), status="success")
        return AuthResult(user=user, access_token=access_token, refresh_token=refresh_token)

    async def login(
        self, email: str, password: str, totp_code: str | None = None
    ) -> AuthResult:
        """Authenticate with password and, when enabled, a TOTP code.

        A wrong password and a wrong TOTP code produce the same message.

        Raises:
            AuthError: Unknown email, disabled account, wrong password,
                missing or wrong TOTP code
        """
        user = await self.store.find_user_by_email(email)
        if user is None:
            self._log("warning", "Login failed", action="login", status="unknown_user")
            raise AuthError(INVALID_CREDENTIALS)

        if not user.is_active:
            self._log("warning", "Login failed", action="login", user_id=str(user.id), status="inactive")
            raise AuthError("Account is disabled")

        if not await verify_password_async(password, user.password_hash):
            self._log("warning", "Login failed", action="login", user_id=str(user.id), status="invalid_password")
            raise AuthError(INVALID_CREDENTIALS)

        if user.two_factor_enabled:
            if not totp_code:
                self._log("info", "Login needs TOTP code", action="login", user_id=str(user.id), status="totp_required")
                raise AuthError("TOTP code required")
            if not self.totp.verify_code(user.two_factor_secret, totp_code):
                self._log("warning", "Login failed", action="login", user_id=str(user.id), status="invalid_totp")
                raise AuthError(INVALID_CREDENTIALS)

        self.tokens.ensure_configured()
        user = await self.store.update_user_fields(
            user.id, last_login_at=datetime.now(UTC)
        ) or user
        access_token, refresh_token = await self._open_session(user)

        self._log("info", "User logged in", action="login", user_id=str(user.id), status="success")
        return AuthResult(user=user, access_token=access_token, refresh_token=refresh_token)

    async def refresh(self, refresh_token: str | None) -> str:
        """Exchange a live refresh token for a new access token.

        The refresh token itself is not rotated.
        """
        if not refresh_token:
            raise AuthError("Refresh token required")

        try:
            user_id = self.tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError as e:
            self._log("warning", "Refresh rejected", action="refresh", status="invalid_token")
            raise AuthError(INVALID_REFRESH_TOKEN) from e

        sessions = await self.store.find_sessions_by_user(user_id)
        if not any(token_matches(refresh_token, s.refresh_token_hash) for s in sessions):
            self._log("warning", "Refresh rejected", action="refresh", user_id=user_id, status="no_session")
            raise AuthError(INVALID_REFRESH_TOKEN)

        user = await self.store.find_user_by_id(user_id)
        if user is None or not user.is_active:
            self._log("warning", "Refresh rejected", action="refresh", user_id=user_id, status="user_unavailable")
            raise AuthError("User not found")

        self._log("info", "Access token refreshed", action="refresh", user_id=user_id, status="success")
        return self.tokens.issue_access_token(user.id, user.email)

    async def logout(
        self, user_id: uuid.UUID | str, refresh_token: str | None = None
    ) -> None:
        """End one session (matching ``refresh_token``) or all sessions.

        Unknown or already revoked tokens are ignored.
        """
        if refresh_token:
            sessions = await self.store.find_sessions_by_user(user_id, include_expired=True)
            removed = 0
            for user_session in sessions:
                if token_matches(refresh_token, user_session.refresh_token_hash):
                    await self.store.delete_session(user_session.id)
                    removed += 1
        else:
            removed = await self.store.delete_all_sessions_for_user(user_id)

        self._log(
            "info",
            "User logged out",
            action="logout",
            user_id=str(user_id),
            scope="single" if refresh_token else "all",
            sessions_removed=removed,
            status="success",
        )

    # -------------------------------------------------------------------------
    # Two-factor authentication
    # -------------------------------------------------------------------------

    async def setup_two_factor(
        self, user_id: uuid.UUID | str, email: str | None = None
    ) -> TwoFactorEnrollment:
        """Generate and store a new TOTP secret; 2FA stays off until verified."""
        user = await self._require_user(user_id)
        if user.two_factor_enabled:
            raise BadRequestError("2FA is already enabled")

        enrollment = self.totp.generate_secret(email or user.email)
        qr_code = await asyncio.to_thread(
            self.totp.render_enrollment_image, enrollment.otpauth_url
        )
        await self.store.update_user_fields(user.id, two_factor_secret=enrollment.secret)

        self._log("info", "2FA setup started", action="setup_2fa", user_id=str(user.id), status="pending")
        return TwoFactorEnrollment(
            secret=enrollment.secret,
            qr_code=qr_code,
            manual_entry_key=enrollment.secret,
        )

    async def verify_two_factor(self, user_id: uuid.UUID | str, totp_code: str | None) -> None:
        """Confirm enrollment with a current code and turn 2FA on."""
        if not totp_code:
            raise ValidationError("TOTP code required")

        user = await self._require_user(user_id)
        if not user.two_factor_secret:
            raise BadRequestError("2FA setup not initiated")
        if not self.totp.verify_code(user.two_factor_secret, totp_code):
            self._log("warning", "2FA verification failed", action="verify_2fa", user_id=str(user.id), status="invalid_totp")
            raise BadRequestError("Invalid TOTP code")

        await self.store.update_user_fields(user.id, two_factor_enabled=True)
        self._log("info", "2FA enabled", action="verify_2fa", user_id=str(user.id), status="success")

    async def disable_two_factor(
        self,
        user_id: uuid.UUID | str,
        password: str | None,
        totp_code: str | None,
    ) -> None:
        """Turn 2FA off; needs both the password and a current code."""
        if not password or not totp_code:
            raise ValidationError("Password and TOTP code required")

        user = await self._require_user(user_id)
        if not await verify_password_async(password, user.password_hash):
            self._log("warning", "2FA disable rejected", action="disable_2fa", user_id=str(user.id), status="invalid_password")
            raise AuthError("Invalid password")
        if not user.two_factor_enabled or not user.two_factor_secret:
            raise BadRequestError("2FA is not enabled")
        if not self.totp.verify_code(user.two_factor_secret, totp_code):
            self._log("warning", "2FA disable rejected", action="disable_2fa", user_id=str(user.id), status="invalid_totp")
            raise AuthError("Invalid TOTP code")

        await self.store.update_user_fields(
            user.id, two_factor_enabled=False, two_factor_secret=None
        )
        self._log("info", "2FA disabled", action="disable_2fa", user_id=str(user.id), status="success")

    # -------------------------------------------------------------------------
    # Password reset
    # -------------------------------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """Mail a reset link when an active user owns ``email``.

        Returns silently for unknown or disabled addresses.

        Raises:
            ServerError: The reset email could not be delivered
        """
        user = await self.store.find_user_by_email(email)
        if user is None or not user.is_active:
            self._log("info", "Password reset requested", action="forgot_password", status="no_user")
            return

        token = await self.reset_tickets.issue(str(user.id))
        try:
            await self.mailer.send_password_reset_email(user.email, user.first_name, token)
        except Exception as e:
            await self.reset_tickets.revoke(token)
            self._log(
                "error",
                "Password reset email failed",
                action="forgot_password",
                user_id=str(user.id),
                status="failed",
                error_type=type(e).__name__,
            )
            raise ServerError("Failed to send reset email") from e

        self._log("info", "Password reset requested", action="forgot_password", user_id=str(user.id), status="sent")

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password from a reset ticket and end all sessions."""
        user_id = await self.reset_tickets.lookup(token)
        if user_id is None:
            raise BadRequestError(INVALID_RESET_TOKEN)

        is_password_complex_enough(new_password, raise_error=True)

        # Single use: only the caller that removes the ticket may proceed
        user_id = await self.reset_tickets.consume(token)
        if user_id is None:
            raise BadRequestError(INVALID_RESET_TOKEN)

        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise BadRequestError(INVALID_RESET_TOKEN)

        password_hash = await hash_password_async(new_password)
        await self.store.update_user_fields(user.id, password_hash=password_hash)
        revoked = await self.store.delete_all_sessions_for_user(user.id)

        self._log(
            "info",
            "Password reset completed",
            action="reset_password",
            user_id=str(user.id),
            sessions_revoked=revoked,
            status="success",
        )

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    async def get_profile(self, user_id: uuid.UUID | str) -> User:
        return await self._require_user(user_id)


__all__ = [
    "AuthResult",
    "AuthService",
    "TwoFactorEnrollment",
]
