"""
Security module: password hashing.
"""

from shared.security.password import hash_password, verify_password, is_bcrypt_hash

__all__ = [
    "hash_password",
    "verify_password",
    "is_bcrypt_hash",
]
