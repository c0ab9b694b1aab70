"""API routes module."""

from catalog_admin.api.routes.categories import router as categories_router
from catalog_admin.api.routes.free_subcategories import router as free_subcategories_router
from catalog_admin.api.routes.health import router as health_router
from catalog_admin.api.routes.images import router as images_router
from catalog_admin.api.routes.lists import router as lists_router
from catalog_admin.api.routes.notifications import router as notifications_router

__all__ = [
    "categories_router",
    "free_subcategories_router",
    "health_router",
    "images_router",
    "lists_router",
    "notifications_router",
]
