"""
Sync routers - /api/sync/*
Connection mode, notices and manual reconciliation.
"""

from .routes import router

__all__ = ["router"]
