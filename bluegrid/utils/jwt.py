"""JWT token creation and verification utility module.

JWT Payload Structure:
    Both access and refresh tokens share the same base payload:
    {
        "sub": "user_uuid",         # User identifier
        "role": "resident",         # Role at issue time (informational only)
        "exp": 1234567890,          # Expiration, UNIX timestamp
        "type": "access"|"refresh"  # Token type discriminator
    }

The role claim is never used for authorization; lifecycle operations
read the current role from the database.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt

from bluegrid.config import settings


def create_access_token(data: dict[str, Any]) -> str:
    """Generate a JWT access token with the given payload data.

    Token expires after JWT_ACCESS_TOKEN_EXPIRE_MINUTES.

    Args:
        data: JWT payload data, typically {"sub": user_id, "role": role}

    Returns:
        str: Encoded JWT token string
    """
    to_encode: dict[str, Any] = data.copy()
    expire: datetime = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict[str, Any]) -> str:
    """Generate a JWT refresh token with the given payload data.

    Token expires after JWT_REFRESH_TOKEN_EXPIRE_DAYS. A random ``jti``
    keeps tokens issued within the same second distinct, since refresh
    tokens are stored under a unique constraint.

    Args:
        data: JWT payload data, same structure as the access token

    Returns:
        str: Encoded JWT refresh token string
    """
    to_encode: dict[str, Any] = data.copy()
    expire: datetime = datetime.now(timezone.utc) + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire, "type": "refresh", "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT token string.

    Args:
        token: Encoded JWT token string

    Returns:
        dict[str, Any]: Decoded payload dictionary

    Raises:
        jwt.ExpiredSignatureError: When the token has expired
        jwt.InvalidTokenError: When the token is invalid
    """
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
