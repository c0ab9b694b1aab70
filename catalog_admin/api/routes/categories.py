"""Category and subcategory endpoints.

Every mutation goes through the category manager, which refetches the
affected collections afterwards. Responses carry the refreshed snapshot.
"""

from fastapi import APIRouter, HTTPException, Query, status

from catalog_admin.api.deps import Manager
from catalog_admin.core.category_manager import (
    CONFIRM_DELETE_CATEGORY,
    CONFIRM_DELETE_SUBCATEGORY,
)
from catalog_admin.schemas.category import (
    CatalogSnapshot,
    Category,
    CategoryCreate,
    CategoryUpdate,
    SubcategoryCreate,
    SubcategoryUpdate,
)

router = APIRouter()


def _confirmation_required(prompt: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_428_PRECONDITION_REQUIRED,
        detail=f"{prompt} Repeat the request with ?confirm=true to proceed.",
    )


@router.get("", response_model=CatalogSnapshot)
async def list_categories(manager: Manager) -> CatalogSnapshot:
    """Reload and return categories and the free-subcategory pool."""
    return await manager.load()


@router.post("", response_model=CatalogSnapshot, status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryCreate, manager: Manager) -> CatalogSnapshot:
    """Create a category. The slug is derived from the name when omitted."""
    await manager.create_category(payload.name, slug=payload.slug, image=payload.image)
    return manager.snapshot()


@router.put("/{slug}", response_model=CatalogSnapshot)
async def update_category(slug: str, patch: CategoryUpdate, manager: Manager) -> CatalogSnapshot:
    await manager.update_category(slug, patch)
    return manager.snapshot()


@router.delete("/{slug}", response_model=CatalogSnapshot)
async def delete_category(
    slug: str,
    manager: Manager,
    confirm: bool = Query(default=False, description="Confirm the deletion"),
) -> CatalogSnapshot:
    """Delete a category. Its subcategories move to the free pool."""
    if not await manager.delete_category(slug, confirm=lambda _: confirm):
        raise _confirmation_required(CONFIRM_DELETE_CATEGORY)
    return manager.snapshot()


@router.post("/{slug}/select", response_model=Category)
async def select_category(slug: str, manager: Manager) -> Category:
    return manager.select_category(slug)


@router.post(
    "/{slug}/subcategories",
    response_model=CatalogSnapshot,
    status_code=status.HTTP_201_CREATED,
)
async def add_subcategory(
    slug: str,
    payload: SubcategoryCreate,
    manager: Manager,
) -> CatalogSnapshot:
    await manager.add_subcategory(
        slug,
        payload.name,
        subcategory_slug=payload.subcategorySlug,
        image=payload.image,
        icon=payload.icon,
    )
    return manager.snapshot()


@router.put("/{slug}/subcategories/{subcategory_slug}", response_model=CatalogSnapshot)
async def update_subcategory(
    slug: str,
    subcategory_slug: str,
    patch: SubcategoryUpdate,
    manager: Manager,
) -> CatalogSnapshot:
    await manager.update_subcategory(slug, subcategory_slug, patch)
    return manager.snapshot()


@router.delete("/{slug}/subcategories/{subcategory_slug}", response_model=CatalogSnapshot)
async def delete_subcategory(
    slug: str,
    subcategory_slug: str,
    manager: Manager,
    confirm: bool = Query(default=False, description="Confirm the deletion"),
) -> CatalogSnapshot:
    if not await manager.delete_subcategory(slug, subcategory_slug, confirm=lambda _: confirm):
        raise _confirmation_required(CONFIRM_DELETE_SUBCATEGORY)
    return manager.snapshot()
