"""
Shared imports for the admin routers.
"""

from fastapi import APIRouter, Depends

from shared.config.constants import Capability
from pos_api.core.dependencies import get_state, require_capability
from pos_api.services.state import AppState

__all__ = ["APIRouter", "AppState", "Capability", "Depends", "get_state", "require_capability"]
