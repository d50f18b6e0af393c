"""
Authentication routers - /api/auth/*
Handles login, logout, session info and site selection.
"""

from .routes import router

__all__ = ["router"]
