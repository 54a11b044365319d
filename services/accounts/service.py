"""
Signup, login and admin bootstrap.
"""

import logging
from typing import Optional

from .security import (
    TokenService,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from .store import EmailAlreadyRegistered, UserStore

logger = logging.getLogger(__name__)

PENDING_APPROVAL_MESSAGE = "Your account is pending approval by an administrator"
SIGNUP_MESSAGE = "Account created. Please wait for admin approval before logging in."


class AccountError(Exception):
    """Signup/login failure carrying the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400, error_code: str = None):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class AccountService:
    def __init__(self, users: UserStore, tokens: TokenService):
        self.users = users
        self.tokens = tokens

    async def signup(self, email: str, password: str, name: Optional[str] = None) -> dict:
        email = (email or "").strip().lower()
        if not email or not password:
            raise AccountError("Email and password are required", error_code="MISSING_FIELDS")

        problem = validate_email(email) or validate_password(password)
        if problem:
            raise AccountError(problem, error_code="VALIDATION_ERROR")

        try:
            user = await self.users.create_user(
                email, hash_password(password), name=(name or "").strip() or None
            )
        except EmailAlreadyRegistered:
            raise AccountError(
                "An account with this email already exists", error_code="EMAIL_TAKEN"
            ) from None

        logger.info(f"Signup {user['id']} awaiting approval")
        return user

    async def login(self, email: str, password: str) -> tuple[dict, str]:
        """
        Check credentials and issue a session token.

        Raises:
            AccountError: 400 missing fields, 401 bad credentials, 403 not approved
        """
        if not email or not password:
            raise AccountError("Email and password are required", error_code="MISSING_FIELDS")

        user = await self.users.get_user_by_email(email.strip())
        if user is None or not verify_password(password, user["password_hash"]):
            raise AccountError(
                "Invalid email or password", status_code=401, error_code="INVALID_CREDENTIALS"
            )

        if not user["is_approved"]:
            logger.info(f"Login refused for unapproved user {user['id']}")
            raise AccountError(
                PENDING_APPROVAL_MESSAGE, status_code=403, error_code="PENDING_APPROVAL"
            )

        return user, self.tokens.issue(user)

    async def ensure_admin(self, email: str, password: str) -> dict:
        """Create the bootstrap admin, or promote the existing account."""
        existing = await self.users.get_user_by_email(email)
        if existing:
            return await self.users.set_role(email, "ADMIN")
        return await self.users.create_user(
            email, hash_password(password), name="Admin", role="ADMIN", is_approved=True
        )
