"""Tests for the category consistency manager."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from catalog_admin.core.category_manager import CategoryManager
from catalog_admin.core.errors import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    TransientError,
    ValidationError,
)
from catalog_admin.core.notifications import Notifier
from catalog_admin.schemas.category import CategoryUpdate, SubcategoryUpdate
from catalog_admin.services.catalog_client import CatalogClient


class TestLoad:
    """Tests for loading the working copy."""

    @pytest.mark.asyncio
    async def test_load_both_collections(self, manager: CategoryManager, backend):
        backend.seed_free("tshirts")

        snapshot = await manager.load()

        assert [c.slug for c in snapshot.categories] == ["apparel"]
        assert [f.slug for f in snapshot.freeSubcategories] == ["tshirts"]
        assert snapshot.categoriesError is None
        assert snapshot.freeSubcategoriesError is None

    @pytest.mark.asyncio
    async def test_pool_failure_does_not_block_categories(self, manager: CategoryManager, backend):
        backend.failures["list_free_subcategories"] = TransientError("pool down")

        snapshot = await manager.load()

        assert [c.slug for c in snapshot.categories] == ["apparel"]
        assert snapshot.freeSubcategoriesError == "pool down"

    @pytest.mark.asyncio
    async def test_category_failure_offers_retry(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        backend.failures["list_categories"] = TransientError("Network error")
        backend.seed_free("tshirts")

        snapshot = await manager.load()

        assert snapshot.categoriesError == "Network error"
        assert [f.slug for f in snapshot.freeSubcategories] == ["tshirts"]
        errors = [n for n in notifier.history() if n.level == "error"]
        assert errors[-1].retry == "refresh_categories"

    @pytest.mark.asyncio
    async def test_refresh_clears_error(self, manager: CategoryManager, backend):
        backend.failures["list_categories"] = TransientError("Network error")
        await manager.load()

        del backend.failures["list_categories"]
        await manager.refresh_categories()

        assert manager.categories_error is None
        assert manager.categories

    @pytest.mark.asyncio
    async def test_ensure_loaded_loads_once(self, manager: CategoryManager, backend):
        await manager.ensure_loaded()
        await manager.ensure_loaded()

        assert backend.calls.count("list_categories") == 1


    @pytest.mark.asyncio
    async def test_malformed_category_payload_reported_per_collection(self, notifier: Notifier):
        client = CatalogClient(base_url="http://test-api:5000/api", timeout=5.0, token="")

        def respond(method, path, **kwargs):
            if path == "/categories":
                return httpx.Response(200, json={"success": True, "data": [{"name": "NoSlug"}]})
            return httpx.Response(200, json={"success": True, "data": []})

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http_client = AsyncMock()
            mock_http_client.request = AsyncMock(side_effect=respond)
            mock_get_client.return_value = mock_http_client

            snapshot = await CategoryManager(client, notifier).load()

        assert snapshot.categoriesError == "Invalid categories in response"
        assert snapshot.freeSubcategoriesError is None
        assert notifier.history()[-1].retry == "refresh_categories"


class TestSelection:
    """Tests for selecting a category."""

    @pytest.mark.asyncio
    async def test_select_category(self, manager: CategoryManager):
        await manager.load()

        assert manager.select_category("apparel").slug == "apparel"
        assert manager.snapshot().selectedSlug == "apparel"

    @pytest.mark.asyncio
    async def test_select_unknown(self, manager: CategoryManager):
        await manager.load()

        with pytest.raises(NotFoundError):
            manager.select_category("missing")

    @pytest.mark.asyncio
    async def test_refresh_repoints_selection(self, manager: CategoryManager, backend):
        await manager.load()
        manager.select_category("apparel")
        backend.seed_category("Apparel", "apparel", ["shirts", "pants", "socks"])

        await manager.refresh_categories()

        assert manager.selected.subcategory_slugs() == ["shirts", "pants", "socks"]


class TestCreateCategory:
    """Tests for category creation."""

    @pytest.mark.asyncio
    async def test_slug_derived_from_name(self, manager: CategoryManager, backend):
        await manager.load()

        slug = await manager.create_category("Men's Wear")

        assert slug == "mens-wear"
        assert backend.categories["mens-wear"].name == "Men's Wear"
        assert manager.find_category("mens-wear") is not None

    @pytest.mark.asyncio
    async def test_empty_name_rejected_without_call(self, manager: CategoryManager, backend):
        with pytest.raises(ValidationError):
            await manager.create_category("   ")

        assert "create_category" not in backend.calls

    @pytest.mark.asyncio
    async def test_underivable_slug_rejected(self, manager: CategoryManager, backend):
        with pytest.raises(ValidationError):
            await manager.create_category("!!!")

        assert "create_category" not in backend.calls

    @pytest.mark.asyncio
    async def test_duplicate_slug_names_the_slug(
        self, manager: CategoryManager, notifier: Notifier
    ):
        await manager.load()

        with pytest.raises(ConflictError) as exc_info:
            await manager.create_category("Apparel")

        assert exc_info.value.identifier == "apparel"
        assert "apparel" in exc_info.value.message
        assert "apparel" in notifier.history()[-1].message
        assert notifier.history()[-1].level == "error"

    @pytest.mark.asyncio
    async def test_success_notifies(self, manager: CategoryManager, notifier: Notifier):
        await manager.create_category("Summer Deals")

        assert notifier.history()[-1].level == "success"
        assert "summer-deals" in notifier.history()[-1].message


class TestUpdateCategory:
    """Tests for category updates."""

    @pytest.mark.asyncio
    async def test_update_keeps_subcategories(self, manager: CategoryManager, backend):
        await manager.load()

        await manager.update_category("apparel", CategoryUpdate(name="Clothing"))

        category = manager.find_category("apparel")
        assert category.name == "Clothing"
        assert category.subcategory_slugs() == ["shirts", "pants"]


class TestDeleteCategory:
    """Tests for category deletion and the demotion cascade."""

    @pytest.mark.asyncio
    async def test_subcategories_demoted_to_pool(self, manager: CategoryManager, backend):
        backend.seed_category("Summer Deals", "summer-deals", ["sandals", "shorts"])
        await manager.load()

        deleted = await manager.delete_category("summer-deals")

        assert deleted is True
        assert manager.find_category("summer-deals") is None
        pool = {f.slug: f for f in manager.free_subcategories}
        assert set(pool) == {"sandals", "shorts"}
        assert all(f.originalCategorySlug == "summer-deals" for f in pool.values())
        assert all(f.originalCategoryName == "Summer Deals" for f in pool.values())

    @pytest.mark.asyncio
    async def test_refreshes_categories_then_pool(self, manager: CategoryManager, backend):
        await manager.load()
        backend.calls.clear()

        await manager.delete_category("apparel")

        assert backend.calls == ["delete_category", "list_categories", "list_free_subcategories"]

    @pytest.mark.asyncio
    async def test_declined_confirmation_makes_no_call(self, backend, notifier: Notifier):
        manager = CategoryManager(backend, notifier, confirm=lambda _: False)
        await manager.load()

        deleted = await manager.delete_category("apparel")

        assert deleted is False
        assert "delete_category" not in backend.calls
        assert manager.find_category("apparel") is not None

    @pytest.mark.asyncio
    async def test_clears_selection(self, manager: CategoryManager):
        await manager.load()
        manager.select_category("apparel")

        await manager.delete_category("apparel")

        assert manager.selected is None

    @pytest.mark.asyncio
    async def test_failure_notifies_and_raises(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        await manager.load()
        backend.failures["delete_category"] = TransientError("Server error: 500")

        with pytest.raises(TransientError):
            await manager.delete_category("apparel")

        assert manager.find_category("apparel") is not None
        assert "apparel" in notifier.history()[-1].message

    @pytest.mark.asyncio
    async def test_pool_refreshed_when_category_refresh_fails(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        await manager.load()
        backend.calls.clear()
        backend.failures["list_categories"] = TransientError("Server error: 503")

        deleted = await manager.delete_category("apparel")

        assert deleted is True
        assert backend.calls == ["delete_category", "list_categories", "list_free_subcategories"]
        assert {f.slug for f in manager.free_subcategories} == {"shirts", "pants"}
        assert manager.categories_error == "Server error: 503"
        last = notifier.history()[-1]
        assert last.level == "error"
        assert "apparel" in last.message
        assert last.retry == "refresh_categories"

    @pytest.mark.asyncio
    async def test_pool_refresh_failure_recorded(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        await manager.load()
        backend.failures["list_free_subcategories"] = TransientError("pool down")

        assert await manager.delete_category("apparel") is True

        assert manager.find_category("apparel") is None
        assert manager.free_subcategories_error == "pool down"
        assert notifier.history()[-1].retry == "refresh_free_subcategories"


class TestSubcategories:
    """Tests for subcategory operations."""

    @pytest.mark.asyncio
    async def test_add_requires_category(self, manager: CategoryManager, backend):
        with pytest.raises(PreconditionError, match="Please select a category first"):
            await manager.add_subcategory(None, "Socks")

        assert "add_subcategory" not in backend.calls

    @pytest.mark.asyncio
    async def test_add_subcategory(self, manager: CategoryManager):
        await manager.load()

        slug = await manager.add_subcategory("apparel", "Winter Socks")

        assert slug == "winter-socks"
        assert manager.find_category("apparel").subcategory_slugs() == [
            "shirts",
            "pants",
            "winter-socks",
        ]

    @pytest.mark.asyncio
    async def test_duplicate_within_parent(self, manager: CategoryManager):
        await manager.load()

        with pytest.raises(ConflictError) as exc_info:
            await manager.add_subcategory("apparel", "Shirts")

        assert exc_info.value.identifier == "shirts"

    @pytest.mark.asyncio
    async def test_same_slug_in_other_parent_allowed(self, manager: CategoryManager, backend):
        backend.seed_category("Kids", "kids")
        await manager.load()

        await manager.add_subcategory("kids", "Shirts")

        assert manager.find_category("kids").subcategory_slugs() == ["shirts"]

    @pytest.mark.asyncio
    async def test_update_subcategory(self, manager: CategoryManager):
        await manager.load()

        await manager.update_subcategory("apparel", "shirts", SubcategoryUpdate(icon="shirt"))

        assert manager.find_category("apparel").subcategories[0].icon == "shirt"

    @pytest.mark.asyncio
    async def test_delete_does_not_demote(self, manager: CategoryManager):
        await manager.load()

        await manager.delete_subcategory("apparel", "shirts")

        assert manager.find_category("apparel").subcategory_slugs() == ["pants"]
        assert manager.free_subcategories == []


class TestOptimisticDelete:
    """Tests for the optimistic subcategory delete."""

    @pytest.mark.asyncio
    async def test_removed_before_backend_call(self, manager: CategoryManager, backend):
        await manager.load()
        manager.select_category("apparel")
        seen: list[list[str]] = []

        original = backend.delete_subcategory

        async def observe(category_slug: str, subcategory_slug: str):
            seen.append(manager.selected.subcategory_slugs())
            return await original(category_slug, subcategory_slug)

        backend.delete_subcategory = observe

        await manager.delete_subcategory("apparel", "shirts")

        assert seen == [["pants"]]

    @pytest.mark.asyncio
    async def test_failure_restores_canonical_state(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        await manager.load()
        manager.select_category("apparel")
        backend.failures["delete_subcategory"] = TransientError("Server error: 500")

        with pytest.raises(TransientError):
            await manager.delete_subcategory("apparel", "shirts")

        assert manager.find_category("apparel").subcategory_slugs() == ["shirts", "pants"]
        assert manager.selected.subcategory_slugs() == ["shirts", "pants"]
        assert "shirts" in notifier.history()[-1].message

    @pytest.mark.asyncio
    async def test_failed_reconcile_still_raises_original(self, manager: CategoryManager, backend):
        await manager.load()
        backend.failures["delete_subcategory"] = NotFoundError("Subcategory not found")
        backend.failures["list_categories"] = TransientError("Network error")

        with pytest.raises(NotFoundError):
            await manager.delete_subcategory("apparel", "shirts")


class TestFreeSubcategories:
    """Tests for the free-subcategory pool."""

    @pytest.mark.asyncio
    async def test_assign_to_category(self, manager: CategoryManager, backend):
        entry = backend.seed_free("tshirts", free_id="f1")
        await manager.load()
        manager.select_category("apparel")

        await manager.assign_free_subcategory(entry.id, "apparel")

        assert manager.free_subcategories == []
        assert "tshirts" in manager.find_category("apparel").subcategory_slugs()
        assert "tshirts" in manager.selected.subcategory_slugs()
        assert "get_category" in backend.calls

    @pytest.mark.asyncio
    async def test_assign_refreshes_pool_when_category_refresh_fails(
        self, manager: CategoryManager, backend, notifier: Notifier
    ):
        entry = backend.seed_free("tshirts", free_id="f1")
        await manager.load()
        manager.select_category("apparel")
        backend.calls.clear()
        backend.failures["list_categories"] = TransientError("Server error: 503")
        backend.failures["get_category"] = TransientError("Server error: 503")

        await manager.assign_free_subcategory(entry.id, "apparel")

        assert backend.calls == [
            "assign_free_subcategory",
            "list_categories",
            "list_free_subcategories",
            "get_category",
        ]
        assert manager.free_subcategories == []
        assert manager.categories_error == "Server error: 503"
        assert manager.selected is not None
        assert "tshirts" in notifier.history()[-1].message

    @pytest.mark.asyncio
    async def test_assign_requires_target(self, manager: CategoryManager, backend):
        backend.seed_free("tshirts", free_id="f1")
        await manager.load()

        with pytest.raises(ValidationError):
            await manager.assign_free_subcategory("f1", "")

        assert "assign_free_subcategory" not in backend.calls

    @pytest.mark.asyncio
    async def test_assign_unknown_category(self, manager: CategoryManager, backend):
        backend.seed_free("tshirts", free_id="f1")
        await manager.load()

        with pytest.raises(ValidationError):
            await manager.assign_free_subcategory("f1", "nope")

    @pytest.mark.asyncio
    async def test_assign_unknown_entry(self, manager: CategoryManager):
        await manager.load()

        with pytest.raises(NotFoundError):
            await manager.assign_free_subcategory("missing", "apparel")

    @pytest.mark.asyncio
    async def test_delete_free_subcategory(self, manager: CategoryManager, backend):
        backend.seed_free("tshirts", free_id="f1")
        await manager.load()

        assert await manager.delete_free_subcategory("f1") is True
        assert manager.free_subcategories == []

    @pytest.mark.asyncio
    async def test_delete_free_declined(self, backend, notifier: Notifier):
        backend.seed_free("tshirts", free_id="f1")
        manager = CategoryManager(backend, notifier)
        await manager.load()

        assert await manager.delete_free_subcategory("f1") is False
        assert "delete_free_subcategory" not in backend.calls


class TestSerialization:
    """Tests for mutation serialization and shutdown."""

    @pytest.mark.asyncio
    async def test_concurrent_mutation_rejected(self, manager: CategoryManager, backend):
        await manager.load()
        gate = asyncio.Event()
        original = backend.create_category

        async def slow_create(payload):
            await gate.wait()
            return await original(payload)

        backend.create_category = slow_create

        first = asyncio.create_task(manager.create_category("Summer Deals"))
        await asyncio.sleep(0)
        assert manager.busy is True

        with pytest.raises(PreconditionError, match="Another catalog change is still in progress"):
            await manager.create_category("Winter Deals")

        gate.set()
        assert await first == "summer-deals"
        assert manager.busy is False
        assert "winter-deals" not in backend.categories

    @pytest.mark.asyncio
    async def test_results_after_close_are_discarded(self, manager: CategoryManager, backend):
        await manager.load()
        await manager.close()
        backend.seed_category("Kids", "kids")

        await manager.refresh_categories()

        assert manager.find_category("kids") is None

    @pytest.mark.asyncio
    async def test_mutation_after_close_rejected(self, manager: CategoryManager):
        await manager.close()

        with pytest.raises(PreconditionError):
            await manager.create_category("Kids")
