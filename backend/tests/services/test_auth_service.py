"""Auth service tests: signup, login, refresh, logout, 2FA and password reset."""

import time
from unittest.mock import AsyncMock

import pyotp
import pytest
from jose import jwt

from bhamail.core.exceptions import (
    AuthError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from bhamail.core.jwt import TokenIssuer
from bhamail.core.security import verify_password
from bhamail.services.auth_service import AuthService

PASSWORD = "Abcd123!"


async def _enable_two_factor(auth_service, user_id) -> str:
    enrollment = await auth_service.setup_two_factor(user_id)
    await auth_service.verify_two_factor(user_id, pyotp.TOTP(enrollment.secret).now())
    return enrollment.secret


def _wrong_code(secret: str) -> str:
    """A code that is not valid anywhere in the +/-2 step window."""
    now = time.time()
    valid = {pyotp.TOTP(secret).at(now, offset) for offset in range(-3, 4)}
    for candidate in range(1_000_000):
        code = f"{candidate:06d}"
        if code not in valid:
            return code
    raise AssertionError("unreachable")


class TestSignup:
    async def test_signup_returns_user_and_tokens(self, auth_service, token_issuer, store):
        result = await auth_service.signup("A@X.com", PASSWORD, "A", "B")

        assert result.user.email == "a@x.com"
        assert verify_password(PASSWORD, result.user.password_hash)
        assert token_issuer.verify_access_token(result.access_token).user_id == str(result.user.id)
        assert token_issuer.verify_refresh_token(result.refresh_token) == str(result.user.id)

        sessions = await store.find_sessions_by_user(result.user.id)
        assert len(sessions) == 1

    async def test_signup_succeeds_exactly_once(self, auth_service):
        await auth_service.signup("a@x.com", PASSWORD, "A", "B")

        with pytest.raises(ConflictError, match="User already exists"):
            await auth_service.signup("a@x.com", PASSWORD, "A", "B")
        with pytest.raises(ConflictError):
            await auth_service.signup(" A@x.COM", "Other123!", "C", "D")

    async def test_weak_password_is_rejected(self, auth_service, store):
        with pytest.raises(ValidationError):
            await auth_service.signup("a@x.com", "password", "A", "B")
        assert await store.find_user_by_email("a@x.com") is None

    async def test_welcome_email_is_sent(self, auth_service, mailer):
        await auth_service.signup("a@x.com", PASSWORD, "Ann", "B")

        [message] = mailer.messages_to("a@x.com")
        assert message["Subject"] == "Welcome to BhaMail!"

    async def test_welcome_email_failure_does_not_fail_signup(self, auth_service, mailer):
        mailer.fail = True

        result = await auth_service.signup("a@x.com", PASSWORD, "A", "B")

        assert result.access_token

    async def test_missing_secrets_fail_before_user_is_created(
        self, db_session, totp_verifier, reset_tickets, mailer, store
    ):
        service = AuthService(
            db_session, TokenIssuer(None, None), totp_verifier, reset_tickets, mailer
        )

        with pytest.raises(ConfigurationError):
            await service.signup("a@x.com", PASSWORD, "A", "B")
        assert await store.find_user_by_email("a@x.com") is None


class TestLogin:
    async def test_login_success(self, auth_service, user_factory, store):
        user = await user_factory(email="a@x.com")

        result = await auth_service.login("A@x.com", PASSWORD)

        assert result.user.id == user.id
        assert result.user.last_login_at is not None
        assert len(await store.find_sessions_by_user(user.id)) == 1

    async def test_each_login_adds_a_session(self, auth_service, user_factory, store):
        user = await user_factory(email="a@x.com")

        await auth_service.login("a@x.com", PASSWORD)
        await auth_service.login("a@x.com", PASSWORD)

        assert len(await store.find_sessions_by_user(user.id)) == 2

    async def test_unknown_email_and_wrong_password_share_message(
        self, auth_service, user_factory
    ):
        await user_factory(email="a@x.com")

        with pytest.raises(AuthError) as unknown:
            await auth_service.login("nobody@x.com", PASSWORD)
        with pytest.raises(AuthError) as wrong:
            await auth_service.login("a@x.com", "Wrong123!")

        assert unknown.value.message == wrong.value.message == "Invalid credentials"

    async def test_inactive_user_is_rejected(self, auth_service, user_factory):
        await user_factory(email="a@x.com", is_active=False)

        with pytest.raises(AuthError, match="Account is disabled"):
            await auth_service.login("a@x.com", PASSWORD)

    async def test_two_factor_login(self, auth_service, user_factory):
        user = await user_factory(email="a@x.com")
        secret = await _enable_two_factor(auth_service, user.id)

        with pytest.raises(AuthError, match="TOTP code required"):
            await auth_service.login("a@x.com", PASSWORD)

        with pytest.raises(AuthError) as wrong_code:
            await auth_service.login("a@x.com", PASSWORD, _wrong_code(secret))
        with pytest.raises(AuthError) as wrong_password:
            await auth_service.login("a@x.com", "Wrong123!", pyotp.TOTP(secret).now())
        assert wrong_code.value.message == wrong_password.value.message

        result = await auth_service.login("a@x.com", PASSWORD, pyotp.TOTP(secret).now())
        assert result.user.two_factor_enabled is True


class TestRefresh:
    async def test_refresh_round_trip(self, auth_service, user_factory):
        user = await user_factory(email="a@x.com")
        login = await auth_service.login("a@x.com", PASSWORD)

        access_token = await auth_service.refresh(login.refresh_token)

        payload = jwt.get_unverified_claims(access_token)
        assert payload["sub"] == str(user.id)
        assert payload["type"] == "access"

    async def test_refresh_does_not_rotate(self, auth_service, user_factory):
        await user_factory(email="a@x.com")
        login = await auth_service.login("a@x.com", PASSWORD)

        await auth_service.refresh(login.refresh_token)
        await auth_service.refresh(login.refresh_token)

    async def test_missing_token(self, auth_service):
        with pytest.raises(AuthError, match="Refresh token required"):
            await auth_service.refresh(None)
        with pytest.raises(AuthError, match="Refresh token required"):
            await auth_service.refresh("")

    async def test_invalid_token(self, auth_service, token_issuer, user_factory):
        user = await user_factory()

        with pytest.raises(AuthError, match="Invalid refresh token"):
            await auth_service.refresh("garbage")
        with pytest.raises(AuthError, match="Invalid refresh token"):
            await auth_service.refresh(token_issuer.issue_access_token(user.id, user.email))

    async def test_validly_signed_token_without_session(self, auth_service, token_issuer, user_factory):
        user = await user_factory()

        with pytest.raises(AuthError, match="Invalid refresh token"):
            await auth_service.refresh(token_issuer.issue_refresh_token(user.id))

    async def test_inactive_user(self, auth_service, user_factory, store):
        user = await user_factory(email="a@x.com")
        login = await auth_service.login("a@x.com", PASSWORD)
        await store.update_user_fields(user.id, is_active=False)

        with pytest.raises(AuthError, match="User not found"):
            await auth_service.refresh(login.refresh_token)


class TestLogout:
    async def test_logout_single_session(self, auth_service, user_factory):
        user = await user_factory(email="a@x.com")
        first = await auth_service.login("a@x.com", PASSWORD)
        second = await auth_service.login("a@x.com", PASSWORD)

        await auth_service.logout(user.id, first.refresh_token)

        with pytest.raises(AuthError):
            await auth_service.refresh(first.refresh_token)
        assert await auth_service.refresh(second.refresh_token)

    async def test_logout_is_idempotent(self, auth_service, user_factory):
        user = await user_factory(email="a@x.com")
        login = await auth_service.login("a@x.com", PASSWORD)

        await auth_service.logout(user.id, login.refresh_token)
        await auth_service.logout(user.id, login.refresh_token)
        await auth_service.logout(user.id, "never-issued")

    async def test_logout_everywhere(self, auth_service, user_factory):
        user = await user_factory(email="a@x.com")
        first = await auth_service.login("a@x.com", PASSWORD)
        second = await auth_service.login("a@x.com", PASSWORD)

        await auth_service.logout(user.id)

        for token in (first.refresh_token, second.refresh_token):
            with pytest.raises(AuthError):
                await auth_service.refresh(token)

    async def test_full_happy_path(self, auth_service):
        signup = await auth_service.signup("a@x.com", PASSWORD, "A", "B")
        login = await auth_service.login("a@x.com", PASSWORD)

        assert await auth_service.refresh(login.refresh_token)

        await auth_service.logout(signup.user.id, login.refresh_token)
        with pytest.raises(AuthError):
            await auth_service.refresh(login.refresh_token)


class TestTwoFactor:
    async def test_setup_stores_secret_without_enabling(self, auth_service, user_factory, store):
        user = await user_factory(email="a@x.com")

        enrollment = await auth_service.setup_two_factor(user.id, user.email)

        assert enrollment.manual_entry_key == enrollment.secret
        assert enrollment.qr_code.startswith("data:image/png;base64,")
        stored = await store.find_user_by_id(user.id)
        assert stored.two_factor_secret == enrollment.secret
        assert stored.two_factor_enabled is False

    async def test_setup_twice_replaces_pending_secret(self, auth_service, user_factory):
        user = await user_factory()

        first = await auth_service.setup_two_factor(user.id)
        second = await auth_service.setup_two_factor(user.id)

        assert first.secret != second.secret

    async def test_setup_when_enabled(self, auth_service, user_factory):
        user = await user_factory()
        await _enable_two_factor(auth_service, user.id)

        with pytest.raises(BadRequestError, match="2FA is already enabled"):
            await auth_service.setup_two_factor(user.id)

    async def test_setup_unknown_user(self, auth_service):
        with pytest.raises(NotFoundError):
            await auth_service.setup_two_factor("00000000-0000-0000-0000-000000000000")

    async def test_verify_errors(self, auth_service, user_factory):
        user = await user_factory()

        with pytest.raises(ValidationError, match="TOTP code required"):
            await auth_service.verify_two_factor(user.id, "")
        with pytest.raises(NotFoundError):
            await auth_service.verify_two_factor("00000000-0000-0000-0000-000000000000", "123456")
        with pytest.raises(BadRequestError, match="2FA setup not initiated"):
            await auth_service.verify_two_factor(user.id, "123456")

        enrollment = await auth_service.setup_two_factor(user.id)
        with pytest.raises(BadRequestError, match="Invalid TOTP code"):
            await auth_service.verify_two_factor(user.id, _wrong_code(enrollment.secret))

    async def test_disable_requires_both_factors(self, auth_service, user_factory, store):
        user = await user_factory(email="a@x.com")
        secret = await _enable_two_factor(auth_service, user.id)

        with pytest.raises(ValidationError):
            await auth_service.disable_two_factor(user.id, PASSWORD, None)
        with pytest.raises(AuthError, match="Invalid password"):
            await auth_service.disable_two_factor(user.id, "Wrong123!", pyotp.TOTP(secret).now())
        with pytest.raises(AuthError, match="Invalid TOTP code"):
            await auth_service.disable_two_factor(user.id, PASSWORD, _wrong_code(secret))

        await auth_service.disable_two_factor(user.id, PASSWORD, pyotp.TOTP(secret).now())

        stored = await store.find_user_by_id(user.id)
        assert stored.two_factor_enabled is False
        assert stored.two_factor_secret is None
        assert (await auth_service.login("a@x.com", PASSWORD)).access_token

    async def test_disable_when_not_enabled(self, auth_service, user_factory):
        user = await user_factory()

        with pytest.raises(BadRequestError, match="2FA is not enabled"):
            await auth_service.disable_two_factor(user.id, PASSWORD, "123456")


class TestPasswordReset:
    async def test_forgot_password_sends_link(self, auth_service, user_factory, mailer, reset_tickets):
        user = await user_factory(email="a@x.com")

        await auth_service.forgot_password("a@x.com")

        [message] = mailer.messages_to("a@x.com")
        body = message.get_payload()[0].get_payload(decode=True).decode()
        token = body.split("token=")[1].split()[0]
        assert await reset_tickets.lookup(token) == str(user.id)
        assert "1 hour" in body

    async def test_forgot_password_unknown_email_is_silent(self, auth_service, mailer):
        await auth_service.forgot_password("nobody@x.com")

        assert mailer.sent == []

    async def test_forgot_password_inactive_user_is_silent(self, auth_service, user_factory, mailer):
        await user_factory(email="a@x.com", is_active=False)

        await auth_service.forgot_password("a@x.com")

        assert mailer.sent == []

    async def test_mail_failure_revokes_ticket(self, auth_service, user_factory, mailer, reset_tickets):
        await user_factory(email="a@x.com")
        mailer.fail = True
        reset_tickets.revoke = AsyncMock(wraps=reset_tickets.revoke)

        with pytest.raises(ServerError, match="Failed to send reset email"):
            await auth_service.forgot_password("a@x.com")

        reset_tickets.revoke.assert_awaited_once()

    async def test_reset_password_invalidates_all_refresh_tokens(
        self, auth_service, user_factory, reset_tickets
    ):
        user = await user_factory(email="a@x.com")
        logins = [await auth_service.login("a@x.com", PASSWORD) for _ in range(2)]
        token = await reset_tickets.issue(str(user.id))

        await auth_service.reset_password(token, "NewPass456!")

        for login in logins:
            with pytest.raises(AuthError):
                await auth_service.refresh(login.refresh_token)
        assert await reset_tickets.lookup(token) is None
        with pytest.raises(AuthError):
            await auth_service.login("a@x.com", PASSWORD)
        assert (await auth_service.login("a@x.com", "NewPass456!")).access_token

    async def test_reset_token_is_single_use(self, auth_service, user_factory, reset_tickets):
        user = await user_factory()
        token = await reset_tickets.issue(str(user.id))

        await auth_service.reset_password(token, "NewPass456!")
        with pytest.raises(BadRequestError, match="Invalid or expired reset token"):
            await auth_service.reset_password(token, "Other789!")

    async def test_ticket_consumed_by_concurrent_request(
        self, auth_service, user_factory, reset_tickets, store
    ):
        user = await user_factory()
        token = await reset_tickets.issue(str(user.id))
        original_lookup = reset_tickets.lookup

        async def lookup_then_lose_race(value):
            found = await original_lookup(value)
            await reset_tickets.consume(value)
            return found

        reset_tickets.lookup = lookup_then_lose_race

        with pytest.raises(BadRequestError, match="Invalid or expired reset token"):
            await auth_service.reset_password(token, "NewPass456!")

        stored = await store.find_user_by_id(user.id)
        assert verify_password(PASSWORD, stored.password_hash)

    async def test_reset_with_unknown_token(self, auth_service):
        with pytest.raises(BadRequestError, match="Invalid or expired reset token"):
            await auth_service.reset_password("unknown", "NewPass456!")

    async def test_reset_with_weak_password_keeps_ticket(self, auth_service, user_factory, reset_tickets):
        user = await user_factory()
        token = await reset_tickets.issue(str(user.id))

        with pytest.raises(ValidationError):
            await auth_service.reset_password(token, "weak")
        assert await reset_tickets.lookup(token) == str(user.id)


class TestProfile:
    async def test_get_profile(self, auth_service, user_factory):
        user = await user_factory()
        assert (await auth_service.get_profile(user.id)).id == user.id

    async def test_get_profile_unknown(self, auth_service):
        with pytest.raises(NotFoundError):
            await auth_service.get_profile("00000000-0000-0000-0000-000000000000")
