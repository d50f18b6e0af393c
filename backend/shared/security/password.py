"""
Password hashing for till users using bcrypt.

User records persist only the bcrypt hash (`passwordHash`).
"""

import bcrypt

from shared.config.logging import get_logger

logger = get_logger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash.
        rounds: bcrypt cost factor. Seed data uses a lower value.

    Returns:
        Hashed password string (includes salt and algorithm info).
    """
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def is_bcrypt_hash(value: str | None) -> bool:
    return bool(value) and value.startswith(BCRYPT_PREFIXES)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Non-bcrypt values (for example plain passwords imported from older
    exports) never match.
    """
    if not is_bcrypt_hash(hashed_password):
        logger.warning("Rejected login against a non-bcrypt password hash")
        return False

    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash with a valid prefix
        logger.warning("Rejected login against a malformed password hash")
        return False
