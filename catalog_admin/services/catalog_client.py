"""Catalog Client - HTTP client for the catalog persistence API.

Covers categories, subcategories, the free-subcategory pool and the
product/shop/vendor listings. The backend is the source of truth; this
client only translates calls and payloads.
"""

from typing import Any, TypeVar

import pydantic

from catalog_admin.core.errors import TransientError
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.category import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    FreeSubcategory,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from catalog_admin.services.api_client import ApiClient

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def parse_items(model: type[ModelT], items: list[Any], what: str) -> list[ModelT]:
    """Validate response items, treating a malformed item as a transient failure."""
    try:
        return [model.model_validate(item) for item in items]
    except pydantic.ValidationError as e:
        logger.error("Malformed items in response", what=what, error=str(e))
        raise TransientError(f"Invalid {what} in response") from e


class CatalogClient(ApiClient):
    """HTTP client for catalog persistence endpoints."""

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(self, include_inactive: bool = True) -> list[Category]:
        """Fetch the full category tree with nested subcategories."""
        params = {"includeInactive": "true"} if include_inactive else None
        body = await self._request("GET", "/categories", params=params)
        categories = parse_items(Category, self._data_list(body), "categories")
        logger.debug("Categories fetched", count=len(categories))
        return categories

    async def get_category(self, slug: str) -> Category:
        """Fetch one category by slug."""
        body = await self._request("GET", f"/categories/{slug}")
        data = body.get("data")
        if not body.get("success", True) or not isinstance(data, dict):
            raise TransientError(f"Invalid response for category '{slug}'")
        return parse_items(Category, [data], "category")[0]

    async def create_category(self, payload: CategoryCreate) -> dict[str, Any]:
        """Create a category. Duplicate slugs come back as 409."""
        body = await self._request(
            "POST",
            "/categories/admin/create",
            json=payload.model_dump(exclude_none=True),
        )
        logger.info("Category created", slug=payload.slug)
        return body

    async def update_category(self, slug: str, patch: CategoryUpdate) -> dict[str, Any]:
        """Partially update a category by slug."""
        body = await self._request(
            "PUT",
            f"/categories/admin/{slug}",
            json=patch.model_dump(exclude_unset=True),
        )
        logger.info("Category updated", slug=slug)
        return body

    async def delete_category(self, slug: str) -> dict[str, Any]:
        """Delete a category.

        The backend demotes every subcategory of the category into the
        free-subcategory pool.
        """
        body = await self._request("DELETE", f"/categories/admin/{slug}")
        logger.info("Category deleted", slug=slug)
        return body

    # -------------------------------------------------------------------------
    # Subcategories
    # -------------------------------------------------------------------------

    async def add_subcategory(
        self, category_slug: str, payload: SubcategoryCreate
    ) -> dict[str, Any]:
        """Add a subcategory under a category."""
        body = await self._request(
            "POST",
            f"/categories/admin/{category_slug}/subcategories",
            json=payload.model_dump(),
        )
        logger.info(
            "Subcategory added",
            category_slug=category_slug,
            subcategory_slug=payload.subcategorySlug,
        )
        return body

    async def update_subcategory(
        self,
        category_slug: str,
        subcategory_slug: str,
        patch: SubcategoryUpdate,
    ) -> dict[str, Any]:
        """Partially update a subcategory."""
        body = await self._request(
            "PUT",
            f"/categories/admin/{category_slug}/subcategories/{subcategory_slug}",
            json=patch.model_dump(exclude_unset=True),
        )
        logger.info(
            "Subcategory updated",
            category_slug=category_slug,
            subcategory_slug=subcategory_slug,
        )
        return body

    async def delete_subcategory(self, category_slug: str, subcategory_slug: str) -> dict[str, Any]:
        """Delete a subcategory outright (no demotion)."""
        body = await self._request(
            "DELETE",
            f"/categories/admin/{category_slug}/subcategories/{subcategory_slug}",
        )
        logger.info(
            "Subcategory deleted",
            category_slug=category_slug,
            subcategory_slug=subcategory_slug,
        )
        return body

    # -------------------------------------------------------------------------
    # Free subcategories
    # -------------------------------------------------------------------------

    async def list_free_subcategories(self, include_inactive: bool = True) -> list[FreeSubcategory]:
        """Fetch the free-subcategory pool."""
        params = {"includeInactive": "true"} if include_inactive else None
        body = await self._request("GET", "/categories/admin/free-subcategories", params=params)
        pool = parse_items(FreeSubcategory, self._data_list(body), "free subcategories")
        logger.debug("Free subcategories fetched", count=len(pool))
        return pool

    async def assign_free_subcategory(
        self, free_subcategory_id: str, category_slug: str
    ) -> dict[str, Any]:
        """Move a free subcategory under a category."""
        body = await self._request(
            "POST",
            f"/categories/admin/free-subcategories/{free_subcategory_id}/assign",
            json={"categorySlug": category_slug},
        )
        logger.info(
            "Free subcategory assigned",
            free_subcategory_id=free_subcategory_id,
            category_slug=category_slug,
        )
        return body

    async def delete_free_subcategory(self, free_subcategory_id: str) -> dict[str, Any]:
        """Permanently delete a free subcategory."""
        body = await self._request(
            "DELETE", f"/categories/admin/free-subcategories/{free_subcategory_id}"
        )
        logger.info("Free subcategory deleted", free_subcategory_id=free_subcategory_id)
        return body

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    async def list_products(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch products (raw dicts)."""
        body = await self._request("GET", "/products", params=params or None)
        return self._data_list(body)

    async def list_shops(self) -> list[dict[str, Any]]:
        """Fetch shops (raw dicts)."""
        body = await self._request("GET", "/shops")
        return self._data_list(body)

    async def list_vendors(self) -> list[dict[str, Any]]:
        """Fetch vendors (raw dicts)."""
        body = await self._request("GET", "/vendors")
        return self._data_list(body)

    def _data_list(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """Extract the `data` list of an envelope, treating null as empty."""
        data = body.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransientError("Expected a list in response data")
        return data


# Singleton instance
_catalog_client: CatalogClient | None = None


def get_catalog_client() -> CatalogClient:
    """Get catalog client singleton."""
    global _catalog_client
    if _catalog_client is None:
        _catalog_client = CatalogClient()
    return _catalog_client
