"""Password hashing and verification utility module.

Uses bcrypt directly. Passwords are never stored in plain text.
"""

import bcrypt


def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt.

    The hash embeds a random salt, so identical passwords hash differently.

    Args:
        password: Plain text password to hash

    Returns:
        str: Bcrypt hash string (~60 chars)
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a bcrypt hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )
