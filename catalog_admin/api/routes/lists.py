"""Cached product, shop and vendor listings."""

from typing import Any

from fastapi import APIRouter, Query

from catalog_admin.api.deps import Lists

router = APIRouter()


@router.get("/products")
async def list_products(
    lists: Lists,
    refresh: bool = Query(default=False, description="Bypass the cache"),
) -> list[dict[str, Any]]:
    return await lists.products(skip_cache=refresh)


@router.get("/shops")
async def list_shops(
    lists: Lists,
    refresh: bool = Query(default=False, description="Bypass the cache"),
) -> list[dict[str, Any]]:
    return await lists.shops(skip_cache=refresh)


@router.get("/vendors")
async def list_vendors(
    lists: Lists,
    refresh: bool = Query(default=False, description="Bypass the cache"),
) -> list[dict[str, Any]]:
    return await lists.vendors(skip_cache=refresh)
