"""
Table and zone routers - /api/tables/*, /api/zones/*
"""

from .routes import router

__all__ = ["router"]
