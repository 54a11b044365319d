"""
Passwords, signup validation and session tokens.

Passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hash>``.
Sessions are HS256 JWTs carried in an HTTP-only cookie (or a Bearer header).
"""

import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

import jwt

from core.config import AuthConfig

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 310_000

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARS_RE = re.compile(r"[^A-Za-z0-9]")


def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$")
    except (AttributeError, ValueError):
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def validate_email(email: str) -> Optional[str]:
    """Return an error message, or None when the email is acceptable."""
    if not email or not EMAIL_RE.match(email):
        return "Invalid email format"
    return None


def validate_password(password: str) -> Optional[str]:
    """Return an error message, or None when the password is strong enough."""
    if not password or len(password) < 8:
        return "Password must be at least 8 characters long"
    if len(password) > 128:
        return "Password must be at most 128 characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one number"
    if not SPECIAL_CHARS_RE.search(password):
        return "Password must contain at least one special character"
    return None


@dataclass
class SessionUser:
    """Identity carried by a session token."""
    id: str
    email: str
    role: str
    is_approved: bool

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    @property
    def user_id(self) -> UUID:
        return UUID(self.id)


class InvalidSession(Exception):
    pass


class TokenService:
    def __init__(self, config: AuthConfig, clock=None):
        self.config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user: dict) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(user["id"]),
            "email": user["email"],
            "role": user["role"],
            "is_approved": bool(user["is_approved"]),
            "iat": now,
            "exp": now + timedelta(seconds=self.config.access_token_expires),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self.config.jwt_secret_key, algorithm=self.config.jwt_algorithm)

    def decode(self, token: str) -> SessionUser:
        """
        Raises:
            InvalidSession: Expired, tampered or malformed token
        """
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret_key,
                algorithms=[self.config.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise InvalidSession("Session expired") from None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected session token: {e}")
            raise InvalidSession("Invalid session") from None

        return SessionUser(
            id=payload["sub"],
            email=payload.get("email", ""),
            role=payload.get("role", "USER"),
            is_approved=bool(payload.get("is_approved")),
        )
