"""BhaMail authentication backend.

Signup, login, session lifecycle and two-factor authentication for the
BhaMail webmail application.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
