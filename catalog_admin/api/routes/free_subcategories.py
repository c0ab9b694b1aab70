"""Free-subcategory pool endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from catalog_admin.api.deps import Manager
from catalog_admin.core.category_manager import CONFIRM_DELETE_FREE_SUBCATEGORY
from catalog_admin.schemas.category import (
    AssignFreeSubcategoryRequest,
    CatalogSnapshot,
    FreeSubcategory,
)

router = APIRouter()


@router.get("", response_model=list[FreeSubcategory])
async def list_free_subcategories(manager: Manager) -> list[FreeSubcategory]:
    return await manager.refresh_free_subcategories()


@router.post("/{free_subcategory_id}/assign", response_model=CatalogSnapshot)
async def assign_free_subcategory(
    free_subcategory_id: str,
    payload: AssignFreeSubcategoryRequest,
    manager: Manager,
) -> CatalogSnapshot:
    """Attach a free subcategory to a category."""
    await manager.assign_free_subcategory(free_subcategory_id, payload.categorySlug)
    return manager.snapshot()


@router.delete("/{free_subcategory_id}", response_model=CatalogSnapshot)
async def delete_free_subcategory(
    free_subcategory_id: str,
    manager: Manager,
    confirm: bool = Query(default=False, description="Confirm the deletion"),
) -> CatalogSnapshot:
    """Permanently delete a free subcategory."""
    if not await manager.delete_free_subcategory(free_subcategory_id, confirm=lambda _: confirm):
        raise HTTPException(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail=f"{CONFIRM_DELETE_FREE_SUBCATEGORY} Repeat the request with ?confirm=true to proceed.",
        )
    return manager.snapshot()
