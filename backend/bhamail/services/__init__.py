"""Business logic services.

This package contains the service classes behind the API routes.
"""

from bhamail.services.auth_service import AuthResult, AuthService, TwoFactorEnrollment
from bhamail.services.credential_store import CredentialStore
from bhamail.services.notifications import Mailer, get_mailer
from bhamail.services.reset_tickets import ResetTicketStore, get_reset_ticket_store
from bhamail.services.user_service import UserService

__all__ = [
    "AuthResult",
    "AuthService",
    "CredentialStore",
    "Mailer",
    "ResetTicketStore",
    "TwoFactorEnrollment",
    "UserService",
    "get_mailer",
    "get_reset_ticket_store",
]
