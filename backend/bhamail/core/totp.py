"""Time-based one-time password (TOTP) second factor.

Secrets are base32 strings generated by pyotp; codes use the standard
30-second step and 6 digits. Enrollment images are PNG QR codes rendered
with ``qrcode`` and returned as data URLs for the web client.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from datetime import datetime

import pyotp
import qrcode

from bhamail.core.config import Settings, settings


@dataclass(frozen=True)
class TotpEnrollment:
    """A freshly generated shared secret and its provisioning URI."""

    secret: str
    otpauth_url: str


class TotpVerifier:
    """Generates TOTP secrets and verifies submitted codes.

    Attributes:
        issuer: Issuer name shown in authenticator apps.
        window: Default number of 30-second steps tolerated on either side
            of the current one.
    """

    def __init__(self, issuer: str = "BhaMail", window: int = 2) -> None:
        self.issuer = issuer
        self.window = window

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> TotpVerifier:
        config = config or settings
        return cls(issuer=config.TOTP_ISSUER, window=config.TOTP_VALID_WINDOW)

    def generate_secret(self, label: str) -> TotpEnrollment:
        """Create a new random secret labelled with ``label`` (the user email)."""
        secret = pyotp.random_base32()
        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=label, issuer_name=self.issuer
        )
        return TotpEnrollment(secret=secret, otpauth_url=otpauth_url)

    @staticmethod
    def render_enrollment_image(otpauth_url: str) -> str:
        """Encode ``otpauth_url`` as a QR code PNG data URL."""
        qr = qrcode.QRCode(box_size=10, border=4)
        qr.add_data(otpauth_url)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        encoded = base64.b64encode(buf.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def verify_code(
        self,
        secret: str | None,
        code: str | None,
        window: int | None = None,
        for_time: datetime | int | None = None,
    ) -> bool:
        """Check ``code`` against ``secret``.

        Args:
            secret: Base32 shared secret
            code: Code submitted by the user; spaces are ignored
            window: Steps tolerated on either side; defaults to ``self.window``
            for_time: Reference time; defaults to now

        Returns:
            True if the code matches any step inside the window.
        """
        if not secret or not code:
            return False

        normalized = code.replace(" ", "")
        if not normalized.isdigit():
            return False

        totp = pyotp.TOTP(secret)
        valid_window = self.window if window is None else window
        return totp.verify(normalized, for_time=for_time, valid_window=valid_window)


__all__ = [
    "TotpEnrollment",
    "TotpVerifier",
]
