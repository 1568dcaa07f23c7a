"""Authentication utilities: password hashing and access tokens."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from exam_portal.config import Settings

# Configure bcrypt to avoid compatibility issues with bcrypt 4.0+
PWD_CONTEXT = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12,
)


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password for storage."""
    return PWD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plaintext password against its hash."""
    return PWD_CONTEXT.verify(plain_password, password_hash)


def create_access_token(user_id: int, role: str, settings: Settings) -> str:
    """Issue a signed token carrying the user's id and role."""
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"userId": user_id, "role": role, "exp": expires}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Decode and verify a token.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, tampered with or expired
    """
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
