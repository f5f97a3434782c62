"""
API Routes Module
"""
from .health import router as health_router
from .custom_dimensions import router as custom_dimensions_router
from .custom_dimensions import site_router as site_custom_dimensions_router

__all__ = [
    "health_router",
    "custom_dimensions_router",
    "site_custom_dimensions_router",
]
