"""
Authentication, session persistence and capability checks.
"""

from .auth_service import AuthService, INVALID_CREDENTIALS, MASTER_USER_ID
from .permissions import PermissionContext
from .session import SessionStore

__all__ = [
    "AuthService",
    "INVALID_CREDENTIALS",
    "MASTER_USER_ID",
    "PermissionContext",
    "SessionStore",
]
