"""Version 1 API endpoints."""

from .endpoints import orders_router

__all__ = ["orders_router"]
