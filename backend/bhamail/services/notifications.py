"""Outgoing account notification mail (welcome and password reset).

Messages are multipart/alternative (plain text + HTML) and are delivered
over SMTP in a worker thread. Delivery failures propagate; callers decide
whether a failed mail matters.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape

from bhamail.core.config import Settings, settings
from bhamail.core.logging import get_logger

logger = get_logger(__name__)

WELCOME_SUBJECT = "Welcome to BhaMail!"
PASSWORD_RESET_SUBJECT = "Reset Your BhaMail Password"

_FOOTER_STYLE = "color: #666; font-size: 12px;"


class Mailer:
    """Sends transactional mail through the configured SMTP relay."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or settings

    @property
    def sender(self) -> str:
        return formataddr((self.config.MAIL_FROM_NAME, self.config.MAIL_FROM_ADDRESS))

    def reset_url(self, token: str) -> str:
        return f"{self.config.WEB_BASE_URL.rstrip('/')}/reset-password?token={token}"

    def _build_message(self, to_email: str, subject: str, text: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def build_welcome_message(self, to_email: str, first_name: str) -> MIMEMultipart:
        base_url = self.config.WEB_BASE_URL
        text = (
            f"Welcome to BhaMail, {first_name}!\n\n"
            "Thank you for joining BhaMail. Your account has been successfully created.\n\n"
            f"Get started by logging into your account: {base_url}\n\n"
            "If you didn't create this account, please ignore this email.\n"
        )
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1 style="color: #2563eb;">Welcome to BhaMail, {escape(first_name)}!</h1>
          <p>Thank you for joining BhaMail. Your account has been successfully created.</p>
          <p><a href="{escape(base_url)}">Access BhaMail</a></p>
          <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
          <p style="{_FOOTER_STYLE}">
            This email was sent by BhaMail. If you didn't create this account, please ignore this email.
          </p>
        </div>
        """
        return self._build_message(to_email, WELCOME_SUBJECT, text, html)

    def build_password_reset_message(
        self, to_email: str, first_name: str, token: str
    ) -> MIMEMultipart:
        reset_url = self.reset_url(token)
        text = (
            "Password Reset Request\n\n"
            f"Hello {first_name},\n\n"
            "We received a request to reset your BhaMail password. "
            "If you didn't make this request, please ignore this email.\n\n"
            f"To reset your password, visit this link: {reset_url}\n\n"
            "This link will expire in 1 hour.\n"
        )
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1 style="color: #2563eb;">Password Reset Request</h1>
          <p>Hello {escape(first_name)},</p>
          <p>We received a request to reset your BhaMail password.
             If you didn't make this request, please ignore this email.</p>
          <p><a href="{escape(reset_url)}">Reset Password</a></p>
          <p style="word-break: break-all; color: #666;">{escape(reset_url)}</p>
          <p><strong>This link will expire in 1 hour.</strong></p>
          <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
          <p style="{_FOOTER_STYLE}">
            This email was sent by BhaMail. If you didn't request a password reset, please ignore this email.
          </p>
        </div>
        """
        return self._build_message(to_email, PASSWORD_RESET_SUBJECT, text, html)

    def _deliver(self, msg: MIMEMultipart) -> None:
        """Send ``msg`` synchronously. Raises on any SMTP failure."""
        with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=10) as server:
            if self.config.SMTP_USE_TLS:
                server.starttls()
            if self.config.SMTP_USERNAME:
                server.login(self.config.SMTP_USERNAME, self.config.SMTP_PASSWORD or "")
            server.send_message(msg)

    async def send(self, msg: MIMEMultipart) -> None:
        await asyncio.to_thread(self._deliver, msg)

    async def send_welcome_email(self, to_email: str, first_name: str) -> None:
        await self.send(self.build_welcome_message(to_email, first_name))
        logger.info(
            "Welcome email sent",
            extra={"context": {"action": "send_welcome_email", "status": "success"}},
        )

    async def send_password_reset_email(
        self, to_email: str, first_name: str, token: str
    ) -> None:
        await self.send(self.build_password_reset_message(to_email, first_name, token))
        logger.info(
            "Password reset email sent",
            extra={
                "context": {"action": "send_password_reset_email", "status": "success"}
            },
        )


_global_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    """Get or create the global mailer."""
    global _global_mailer

    if _global_mailer is None:
        _global_mailer = Mailer()
    return _global_mailer


__all__ = [
    "PASSWORD_RESET_SUBJECT",
    "WELCOME_SUBJECT",
    "Mailer",
    "get_mailer",
]
