"""Cached product, shop and vendor listings.

Listings are served from the cache while fresh and refetched otherwise.
Products are slimmed down before caching to keep entries small, so a cache
hit returns the slim product shape while a fetch returns the full one.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from catalog_admin.infra.cache import CacheKey, CacheService
from catalog_admin.infra.logging import get_logger
from catalog_admin.services.catalog_client import CatalogClient

logger = get_logger(__name__)

PRODUCT_CACHE_FIELDS = ("_id", "name", "category", "slug", "price", "stock", "isActive")


def slim_product(product: dict[str, Any]) -> dict[str, Any]:
    """Keep only the product fields needed by list views."""
    return {field: product.get(field) for field in PRODUCT_CACHE_FIELDS}


class CachedCatalogLists:
    """Listing reads backed by CacheService."""

    def __init__(self, client: CatalogClient, cache: CacheService) -> None:
        self._client = client
        self._cache = cache

    async def products(self, skip_cache: bool = False) -> list[dict[str, Any]]:
        return await self._get(
            CacheKey.PRODUCTS,
            self._client.list_products,
            skip_cache,
            transform=slim_product,
        )

    async def shops(self, skip_cache: bool = False) -> list[dict[str, Any]]:
        return await self._get(CacheKey.SHOPS, self._client.list_shops, skip_cache)

    async def vendors(self, skip_cache: bool = False) -> list[dict[str, Any]]:
        return await self._get(CacheKey.VENDORS, self._client.list_vendors, skip_cache)

    async def _get(
        self,
        key: CacheKey,
        fetch: Callable[[], Awaitable[list[dict[str, Any]]]],
        skip_cache: bool,
        transform: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        if not skip_cache:
            cached = self._cache.load(key)
            if cached is not None:
                return cached

        items = await fetch()
        cached_items = [transform(item) for item in items] if transform else items

        self._cache.save(key, cached_items)
        logger.info("Listing refreshed", key=key.value, count=len(items), skip_cache=skip_cache)
        return items
