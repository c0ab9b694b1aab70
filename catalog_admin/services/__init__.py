"""Clients for the persistence API and the image hosting service."""

from catalog_admin.services.catalog_client import CatalogClient, get_catalog_client
from catalog_admin.services.catalog_lists import CachedCatalogLists
from catalog_admin.services.image_host_client import ImageHostClient, get_image_host_client

__all__ = [
    "CatalogClient",
    "get_catalog_client",
    "CachedCatalogLists",
    "ImageHostClient",
    "get_image_host_client",
]
