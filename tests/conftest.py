"""Shared fixtures: in-memory persistence backend, image helpers, gateway client."""

import io
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from catalog_admin.core.category_manager import CategoryManager
from catalog_admin.core.errors import ConflictError, NotFoundError, ValidationError
from catalog_admin.core.notifications import Notifier
from catalog_admin.core.ownership import Free, Owned
from catalog_admin.infra.cache import CacheService, MemoryStore
from catalog_admin.schemas.category import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    FreeSubcategory,
    Subcategory,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from catalog_admin.schemas.image import UploadSource
from catalog_admin.services.catalog_lists import CachedCatalogLists


class FakeCatalogBackend:
    """In-memory stand-in for CatalogClient.

    Implements the server-side cascade: deleting a category demotes its
    subcategories into the free pool. `failures` maps a method name to an
    exception raised on every call of that method.
    """

    def __init__(self) -> None:
        self.categories: dict[str, Category] = {}
        self.free: dict[str, FreeSubcategory] = {}
        self.products: list[dict[str, Any]] = []
        self.shops: list[dict[str, Any]] = []
        self.vendors: list[dict[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._next_id = 1

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def seed_category(self, name: str, slug: str, subcategories: list[str] | None = None) -> Category:
        category = Category(
            name=name,
            slug=slug,
            subcategories=[Subcategory(name=s.title(), slug=s) for s in subcategories or []],
        )
        self.categories[slug] = category
        return category

    def seed_free(self, slug: str, original_slug: str = "old", free_id: str | None = None) -> FreeSubcategory:
        entry = FreeSubcategory(
            _id=free_id or self._new_id(),
            name=slug.title(),
            slug=slug,
            originalCategoryName=original_slug.title(),
            originalCategorySlug=original_slug,
        )
        self.free[entry.id] = entry
        return entry

    def _new_id(self) -> str:
        free_id = f"free-{self._next_id}"
        self._next_id += 1
        return free_id

    async def list_categories(self, include_inactive: bool = True) -> list[Category]:
        self._enter("list_categories")
        return list(self.categories.values())

    async def get_category(self, slug: str) -> Category:
        self._enter("get_category")
        if slug not in self.categories:
            raise NotFoundError("Category not found")
        return self.categories[slug]

    async def create_category(self, payload: CategoryCreate) -> dict[str, Any]:
        self._enter("create_category")
        if payload.slug in self.categories:
            raise ConflictError("Category with this slug already exists")
        self.categories[payload.slug] = Category(name=payload.name, slug=payload.slug, image=payload.image)
        return {"success": True}

    async def update_category(self, slug: str, patch: CategoryUpdate) -> dict[str, Any]:
        self._enter("update_category")
        if slug not in self.categories:
            raise NotFoundError("Category not found")
        updated = self.categories.pop(slug).model_copy(update=patch.model_dump(exclude_unset=True))
        self.categories[updated.slug] = updated
        return {"success": True}

    async def delete_category(self, slug: str) -> dict[str, Any]:
        self._enter("delete_category")
        category = self.categories.pop(slug, None)
        if category is None:
            raise NotFoundError("Category not found")
        for sub in category.subcategories:
            demoted = Owned(sub, slug).demote(category, free_id=self._new_id())
            self.free[demoted.entry.id] = demoted.entry
        return {"success": True}

    async def add_subcategory(self, category_slug: str, payload: SubcategoryCreate) -> dict[str, Any]:
        self._enter("add_subcategory")
        category = self.categories.get(category_slug)
        if category is None:
            raise NotFoundError("Category not found")
        if payload.subcategorySlug in category.subcategory_slugs():
            raise ConflictError("Subcategory with this slug already exists")
        sub = Subcategory(name=payload.name, slug=payload.subcategorySlug, image=payload.image, icon=payload.icon)
        self.categories[category_slug] = category.model_copy(
            update={"subcategories": [*category.subcategories, sub]}
        )
        return {"success": True}

    async def update_subcategory(
        self, category_slug: str, subcategory_slug: str, patch: SubcategoryUpdate
    ) -> dict[str, Any]:
        self._enter("update_subcategory")
        category = self.categories[category_slug]
        changes = patch.model_dump(exclude_unset=True)
        subs = [
            sub.model_copy(update=changes) if sub.slug == subcategory_slug else sub
            for sub in category.subcategories
        ]
        self.categories[category_slug] = category.model_copy(update={"subcategories": subs})
        return {"success": True}

    async def delete_subcategory(self, category_slug: str, subcategory_slug: str) -> dict[str, Any]:
        self._enter("delete_subcategory")
        category = self.categories[category_slug]
        subs = [sub for sub in category.subcategories if sub.slug != subcategory_slug]
        self.categories[category_slug] = category.model_copy(update={"subcategories": subs})
        return {"success": True}

    async def list_free_subcategories(self, include_inactive: bool = True) -> list[FreeSubcategory]:
        self._enter("list_free_subcategories")
        return list(self.free.values())

    async def assign_free_subcategory(self, free_subcategory_id: str, category_slug: str) -> dict[str, Any]:
        self._enter("assign_free_subcategory")
        if not category_slug:
            raise ValidationError("Category slug is required")
        entry = self.free.pop(free_subcategory_id, None)
        if entry is None:
            raise NotFoundError("Free subcategory not found")
        owned = Free(entry).assign(category_slug)
        category = self.categories[category_slug]
        self.categories[category_slug] = category.model_copy(
            update={"subcategories": [*category.subcategories, owned.subcategory]}
        )
        return {"success": True}

    async def delete_free_subcategory(self, free_subcategory_id: str) -> dict[str, Any]:
        self._enter("delete_free_subcategory")
        if self.free.pop(free_subcategory_id, None) is None:
            raise NotFoundError("Free subcategory not found")
        return {"success": True}

    async def list_products(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self._enter("list_products")
        return list(self.products)

    async def list_shops(self) -> list[dict[str, Any]]:
        self._enter("list_shops")
        return list(self.shops)

    async def list_vendors(self) -> list[dict[str, Any]]:
        self._enter("list_vendors")
        return list(self.vendors)

    async def close(self) -> None:
        pass


def make_image_bytes(
    size: tuple[int, int] = (64, 48),
    fmt: str = "PNG",
    noisy: bool = False,
) -> bytes:
    """Encode a test image. `noisy` produces content that compresses poorly."""
    if noisy:
        img = Image.effect_noise(size, 100).convert("RGB")
    else:
        img = Image.linear_gradient("L").resize(size).convert("RGB")
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_upload(
    filename: str = "photo.png",
    content_type: str = "image/png",
    data: bytes | None = None,
) -> UploadSource:
    return UploadSource(
        filename=filename,
        contentType=content_type,
        data=data if data is not None else make_image_bytes(),
    )


@pytest.fixture
def image_factory():
    """Factory for encoded test images."""
    return make_image_bytes


@pytest.fixture
def upload_factory():
    """Factory for UploadSource test files."""
    return make_upload


@pytest.fixture
def backend() -> FakeCatalogBackend:
    """Backend seeded with one category holding two subcategories."""
    fake = FakeCatalogBackend()
    fake.seed_category("Apparel", "apparel", ["shirts", "pants"])
    return fake


@pytest.fixture
def notifier() -> Notifier:
    return Notifier(display_seconds=3.0)


@pytest.fixture
def manager(backend: FakeCatalogBackend, notifier: Notifier) -> CategoryManager:
    """Manager that confirms every destructive operation."""
    return CategoryManager(backend, notifier, confirm=lambda _: True)


@pytest_asyncio.fixture
async def client(backend: FakeCatalogBackend, notifier: Notifier) -> AsyncClient:
    """Gateway client wired to the fake backend."""
    from catalog_admin.api import deps
    from catalog_admin.main import app

    gateway_manager = CategoryManager(backend, notifier)

    async def manager_override() -> CategoryManager:
        await gateway_manager.ensure_loaded()
        return gateway_manager

    app.dependency_overrides[deps.get_manager] = manager_override
    app.dependency_overrides[deps.get_catalog] = lambda: backend
    app.dependency_overrides[deps.get_notifications] = lambda: notifier
    app.dependency_overrides[deps.get_lists] = lambda: CachedCatalogLists(backend, CacheService(MemoryStore()))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
