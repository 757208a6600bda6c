"""Email normalization helpers.

Email addresses are the login identity, so every lookup and every stored
address goes through ``normalize_email``.
"""

from __future__ import annotations


def normalize_email(email: str | None) -> str:
    """Normalize email address for storage and comparison.

    Lowercases and trims whitespace. Plus tags and dots in the local part
    are preserved.

    Examples:
        >>> normalize_email("  Test@Example.COM  ")
        'test@example.com'
        >>> normalize_email("user+tag@example.com")
        'user+tag@example.com'
    """
    if not email:
        return ""
    return email.strip().lower()


def email_domain(email: str) -> str:
    """Return the domain part of an address (text after the last ``@``).

    Examples:
        >>> email_domain("jane@bhamail.com")
        'bhamail.com'
    """
    _, _, domain = normalize_email(email).rpartition("@")
    return domain


__all__ = [
    "email_domain",
    "normalize_email",
]
