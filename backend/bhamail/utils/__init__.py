"""Utility functions and helpers."""

from bhamail.utils.email import email_domain, normalize_email

__all__ = [
    "email_domain",
    "normalize_email",
]
