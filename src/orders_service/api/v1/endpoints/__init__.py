"""API endpoint modules for version 1."""

from .orders import router as orders_router

__all__ = ["orders_router"]
