"""FastAPI dependencies for dependency injection.

Provides:
- Category manager (working copy of the catalog)
- Persistence and image hosting clients
- Image compressor, cached listings and the notification feed
"""

from typing import Annotated

from fastapi import Depends, UploadFile

from catalog_admin.core.category_manager import CategoryManager, get_category_manager
from catalog_admin.core.image_compressor import ImageCompressor, get_image_compressor
from catalog_admin.core.notifications import Notifier, get_notifier
from catalog_admin.infra.cache import get_cache_service
from catalog_admin.schemas.image import UploadSource
from catalog_admin.services.catalog_client import CatalogClient, get_catalog_client
from catalog_admin.services.catalog_lists import CachedCatalogLists
from catalog_admin.services.image_host_client import ImageHostClient, get_image_host_client


async def get_manager() -> CategoryManager:
    """Get the category manager, loading its working copy on first use."""
    manager = get_category_manager()
    await manager.ensure_loaded()
    return manager


async def get_catalog() -> CatalogClient:
    return get_catalog_client()


async def get_image_host() -> ImageHostClient:
    return get_image_host_client()


async def get_compressor() -> ImageCompressor:
    return get_image_compressor()


async def get_lists(
    client: Annotated[CatalogClient, Depends(get_catalog)],
) -> CachedCatalogLists:
    """Cached listings over the catalog client."""
    return CachedCatalogLists(client, get_cache_service())


async def get_notifications() -> Notifier:
    return get_notifier()


# Type aliases for cleaner annotations
Manager = Annotated[CategoryManager, Depends(get_manager)]
Catalog = Annotated[CatalogClient, Depends(get_catalog)]
ImageHost = Annotated[ImageHostClient, Depends(get_image_host)]
Compressor = Annotated[ImageCompressor, Depends(get_compressor)]
Lists = Annotated[CachedCatalogLists, Depends(get_lists)]
Notifications = Annotated[Notifier, Depends(get_notifications)]


async def read_upload(file: UploadFile) -> UploadSource:
    """Read a multipart file into an UploadSource."""
    return UploadSource(
        filename=file.filename or "",
        contentType=file.content_type or "",
        data=await file.read(),
    )
