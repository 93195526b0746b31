"""
Prep console routers - /api/prep/*
"""

from .routes import router

__all__ = ["router"]
