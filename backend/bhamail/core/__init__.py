"""Core application configuration and utilities.

This package contains:
- Configuration management (config.py)
- Error hierarchy (exceptions.py)
- Logging setup (logging.py)
- Password and token hashing (security.py)
- JWT issuing (jwt.py) and TOTP verification (totp.py)
"""

from bhamail.core.config import settings
from bhamail.core.security import (
    PasswordComplexityError,
    hash_password,
    is_password_complex_enough,
    verify_password,
)

__all__ = [
    "PasswordComplexityError",
    "hash_password",
    "is_password_complex_enough",
    "settings",
    "verify_password",
]
