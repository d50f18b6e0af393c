"""
Order routers - /api/orders/*
Drafts, item editing, save, status changes and checkout.
"""

from .routes import router

__all__ = ["router"]
