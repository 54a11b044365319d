"""
User accounts: signup with admin approval, password login, JWT sessions.
"""

from .security import (
    InvalidSession,
    SessionUser,
    TokenService,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from .service import (
    PENDING_APPROVAL_MESSAGE,
    SIGNUP_MESSAGE,
    AccountError,
    AccountService,
)
from .store import EmailAlreadyRegistered, UserStore

__all__ = [
    "AccountError",
    "AccountService",
    "EmailAlreadyRegistered",
    "InvalidSession",
    "PENDING_APPROVAL_MESSAGE",
    "SIGNUP_MESSAGE",
    "SessionUser",
    "TokenService",
    "UserStore",
    "hash_password",
    "validate_email",
    "validate_password",
    "verify_password",
]
