"""Category/subcategory consistency manager.

Keeps a working copy of the category tree and the free-subcategory pool and
mediates every structural change through the persistence API. The backend
is the source of truth: after each mutation the affected collections are
refetched. Deleting a category demotes its subcategories into the free pool,
so that operation refreshes both collections.

Subcategory deletion is the only change applied locally before the backend
confirms it; a failure is compensated by refetching the canonical tree.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from catalog_admin.core.errors import (
    CatalogAdminError,
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from catalog_admin.core.notifications import Notifier, get_notifier
from catalog_admin.core.ownership import Free, owned_states
from catalog_admin.core.slugs import resolve_slug
from catalog_admin.infra.logging import get_logger, operation_context
from catalog_admin.schemas.category import (
    CatalogSnapshot,
    Category,
    CategoryCreate,
    CategoryUpdate,
    FreeSubcategory,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from catalog_admin.services.catalog_client import CatalogClient, get_catalog_client

logger = get_logger(__name__)

ConfirmCallback = Callable[[str], bool]

CONFIRM_DELETE_CATEGORY = (
    "Are you sure you want to delete this category? "
    "Subcategories will be moved to Free Subcategories section."
)
CONFIRM_DELETE_SUBCATEGORY = "Are you sure you want to delete this subcategory?"
CONFIRM_DELETE_FREE_SUBCATEGORY = "Are you sure you want to permanently delete this free subcategory?"


def deny_all(message: str) -> bool:
    """Default confirmation: nothing destructive happens unless confirmed."""
    return False


class CategoryManager:
    """Working copy of categories and free subcategories."""

    def __init__(
        self,
        client: CatalogClient,
        notifier: Notifier | None = None,
        confirm: ConfirmCallback = deny_all,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Persistence API client
            notifier: Notification feed (a private one is created if omitted)
            confirm: Asked before destructive operations; returns True to proceed
        """
        self._client = client
        self._notifier = notifier or Notifier()
        self._confirm = confirm

        self.categories: list[Category] = []
        self.free_subcategories: list[FreeSubcategory] = []
        self.selected: Category | None = None
        self.categories_error: str | None = None
        self.free_subcategories_error: str | None = None

        self._mutation_lock = asyncio.Lock()
        self._compensations: dict[str, asyncio.Task[None]] = {}
        self._closed = False
        self._loaded = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while a mutation is in flight."""
        return self._mutation_lock.locked()

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> CatalogSnapshot:
        """Current working copy."""
        return CatalogSnapshot(
            categories=list(self.categories),
            freeSubcategories=list(self.free_subcategories),
            selectedSlug=self.selected.slug if self.selected else None,
            categoriesError=self.categories_error,
            freeSubcategoriesError=self.free_subcategories_error,
        )

    def find_category(self, slug: str) -> Category | None:
        return next((c for c in self.categories if c.slug == slug), None)

    def find_free_subcategory(self, free_subcategory_id: str) -> FreeSubcategory | None:
        return next((f for f in self.free_subcategories if f.id == free_subcategory_id), None)

    def select_category(self, slug: str) -> Category:
        """Select a category from the working copy.

        Raises:
            NotFoundError: If the slug is not in the working copy
        """
        category = self.find_category(slug)
        if category is None:
            raise NotFoundError(f"Category '{slug}' not found")
        self.selected = category
        return category

    async def close(self) -> None:
        """Stop applying results. In-flight calls finish but are discarded."""
        self._closed = True
        for task in list(self._compensations.values()):
            task.cancel()
        self._compensations.clear()
        logger.info("Category manager closed")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def load(self) -> CatalogSnapshot:
        """Fetch categories and the free pool independently.

        A failure in one collection is recorded on the snapshot and does not
        prevent the other from loading.
        """
        results = await asyncio.gather(
            self.refresh_categories(),
            self.refresh_free_subcategories(),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, CatalogAdminError):
                raise result

        categories_result = results[0]
        if isinstance(categories_result, CatalogAdminError):
            self._notifier.error(
                categories_result.message or "Failed to fetch categories",
                retry="refresh_categories",
            )

        self._loaded = True
        return self.snapshot()

    async def ensure_loaded(self) -> None:
        """Load the working copy once, on first use."""
        if not self._loaded:
            await self.load()

    async def refresh_categories(self) -> list[Category]:
        """Refetch the category tree and re-point the selection."""
        try:
            categories = await self._client.list_categories()
        except CatalogAdminError as e:
            if not self._closed:
                self.categories_error = e.message or "Failed to fetch categories"
            logger.error("Error fetching categories", error=str(e))
            raise

        if self._discarded("categories"):
            return categories

        self.categories = categories
        self.categories_error = None
        if self.selected is not None:
            self.selected = self.find_category(self.selected.slug)
        return categories

    async def refresh_free_subcategories(self) -> list[FreeSubcategory]:
        """Refetch the free-subcategory pool."""
        try:
            pool = await self._client.list_free_subcategories()
        except CatalogAdminError as e:
            if not self._closed:
                self.free_subcategories_error = e.message or "Failed to fetch free subcategories"
            logger.error("Error fetching free subcategories", error=str(e))
            raise

        if self._discarded("free_subcategories"):
            return pool

        self.free_subcategories = pool
        self.free_subcategories_error = None
        return pool

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def create_category(
        self,
        name: str,
        slug: str | None = None,
        image: str | None = None,
    ) -> str:
        """Create a category.

        Args:
            name: Display name (required)
            slug: Explicit slug; derived from the name when omitted
            image: Optional image URL

        Returns:
            Slug of the created category

        Raises:
            ValidationError: Empty name or underivable slug
            ConflictError: Slug already taken
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required")
        resolved = resolve_slug(name, slug)
        if not resolved:
            raise ValidationError(f"Cannot derive a slug from category name '{name}'")

        async with self._mutation("create_category", slug=resolved):
            try:
                await self._client.create_category(
                    CategoryCreate(name=name, slug=resolved, image=image or None)
                )
            except ConflictError as e:
                self._notifier.error(f"Error creating category '{resolved}': {e.message}")
                raise ConflictError(
                    f"Category slug '{resolved}' already exists: {e.message}",
                    identifier=resolved,
                ) from e
            except CatalogAdminError as e:
                self._notifier.error(f"Error creating category '{resolved}': {e.message}")
                raise

            self._notifier.success(f"Category '{resolved}' created successfully")
            await self.refresh_categories()

        logger.info("Category created", slug=resolved)
        return resolved

    async def update_category(self, slug: str, patch: CategoryUpdate) -> None:
        """Partially update a category. Subcategories are untouched."""
        async with self._mutation("update_category", slug=slug):
            try:
                await self._client.update_category(slug, patch)
            except CatalogAdminError as e:
                self._notifier.error(f"Error updating category '{slug}': {e.message}")
                raise

            self._notifier.success(f"Category '{slug}' updated successfully")
            if self.selected is not None and self.selected.slug == slug and patch.slug:
                self.selected = self.selected.model_copy(update={"slug": patch.slug})
            await self.refresh_categories()

    async def delete_category(self, slug: str, confirm: ConfirmCallback | None = None) -> bool:
        """Delete a category; its subcategories are demoted to the free pool.

        Refetches categories and then the free pool, in that order, and checks
        that every former subcategory landed in the pool.

        Returns:
            False if the user declined, True once deleted
        """
        if not (confirm or self._confirm)(CONFIRM_DELETE_CATEGORY):
            logger.info("Category deletion not confirmed", slug=slug)
            return False

        async with self._mutation("delete_category", slug=slug):
            doomed = self.find_category(slug)
            try:
                await self._client.delete_category(slug)
            except CatalogAdminError as e:
                self._notifier.error(f"Error deleting category '{slug}': {e.message}")
                raise

            self._notifier.success(
                f"Category '{slug}' deleted successfully. "
                "Subcategories moved to Free Subcategories."
            )
            if self.selected is not None and self.selected.slug == slug:
                self.selected = None

            pool_fresh = await self._refresh_after_commit(slug)

            if doomed is not None and pool_fresh:
                self._check_demotion(doomed)

        return True

    def _check_demotion(self, deleted: Category) -> None:
        """Compare the refreshed pool against the expected demotions."""
        expected = {state.demote(deleted).entry.slug for state in owned_states(deleted)}
        landed = {
            entry.slug
            for entry in self.free_subcategories
            if entry.originalCategorySlug == deleted.slug
        }
        missing = sorted(expected - landed)
        if missing:
            logger.warning(
                "Demotion cascade incomplete",
                category_slug=deleted.slug,
                missing_subcategories=missing,
            )
        else:
            logger.info(
                "Subcategories demoted to free pool",
                category_slug=deleted.slug,
                count=len(expected),
            )

    # -------------------------------------------------------------------------
    # Subcategories
    # -------------------------------------------------------------------------

    async def add_subcategory(
        self,
        category_slug: str | None,
        name: str,
        subcategory_slug: str | None = None,
        image: str | None = None,
        icon: str | None = None,
    ) -> str:
        """Add a subcategory under a category.

        Returns:
            Slug of the new subcategory

        Raises:
            PreconditionError: No category selected
            ValidationError: Empty name
        """
        if not category_slug:
            raise PreconditionError("Please select a category first")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Subcategory name is required")
        resolved = resolve_slug(name, subcategory_slug)
        if not resolved:
            raise ValidationError(f"Cannot derive a slug from subcategory name '{name}'")

        async with self._mutation("add_subcategory", slug=category_slug, subcategory_slug=resolved):
            try:
                await self._client.add_subcategory(
                    category_slug,
                    SubcategoryCreate(
                        name=name,
                        subcategorySlug=resolved,
                        image=image or None,
                        icon=icon or None,
                    ),
                )
            except ConflictError as e:
                self._notifier.error(
                    f"Error adding subcategory '{resolved}' to '{category_slug}': {e.message}"
                )
                raise ConflictError(
                    f"Subcategory slug '{resolved}' already exists in '{category_slug}': {e.message}",
                    identifier=resolved,
                ) from e
            except CatalogAdminError as e:
                self._notifier.error(
                    f"Error adding subcategory '{resolved}' to '{category_slug}': {e.message}"
                )
                raise

            self._notifier.success(f"Subcategory '{resolved}' added to '{category_slug}'")
            await self.refresh_categories()

        return resolved

    async def update_subcategory(
        self,
        category_slug: str,
        subcategory_slug: str,
        patch: SubcategoryUpdate,
    ) -> None:
        """Partially update a subcategory."""
        if not category_slug:
            raise PreconditionError("Please select a category first")

        async with self._mutation("update_subcategory", slug=category_slug, subcategory_slug=subcategory_slug):
            try:
                await self._client.update_subcategory(category_slug, subcategory_slug, patch)
            except CatalogAdminError as e:
                self._notifier.error(
                    f"Error updating subcategory '{subcategory_slug}' in '{category_slug}': {e.message}"
                )
                raise

            self._notifier.success(f"Subcategory '{subcategory_slug}' updated successfully")
            await self.refresh_categories()

    async def delete_subcategory(
        self,
        category_slug: str,
        subcategory_slug: str,
        confirm: ConfirmCallback | None = None,
    ) -> bool:
        """Delete a subcategory with an optimistic local removal.

        The subcategory disappears from the working copy before the backend
        call. On failure the canonical tree is refetched and the error is
        re-raised.

        Returns:
            False if the user declined, True once deleted
        """
        if not category_slug:
            raise PreconditionError("Please select a category first")
        if not (confirm or self._confirm)(CONFIRM_DELETE_SUBCATEGORY):
            logger.info(
                "Subcategory deletion not confirmed",
                category_slug=category_slug,
                subcategory_slug=subcategory_slug,
            )
            return False

        async with self._mutation("delete_subcategory", slug=category_slug, subcategory_slug=subcategory_slug):
            self._remove_subcategory_locally(category_slug, subcategory_slug)

            try:
                await self._client.delete_subcategory(category_slug, subcategory_slug)
            except CatalogAdminError as e:
                self._notifier.error(
                    f"Error deleting subcategory '{subcategory_slug}' from '{category_slug}': {e.message}"
                )
                await self._compensate(f"delete_subcategory:{category_slug}/{subcategory_slug}")
                raise

            self._notifier.success(f"Subcategory '{subcategory_slug}' deleted successfully")
            await self._refresh_after_commit(f"{category_slug}/{subcategory_slug}")

        return True

    def _remove_subcategory_locally(self, category_slug: str, subcategory_slug: str) -> None:
        updated: list[Category] = []
        for category in self.categories:
            if category.slug == category_slug:
                category = category.model_copy(
                    update={
                        "subcategories": [
                            sub for sub in category.subcategories if sub.slug != subcategory_slug
                        ]
                    }
                )
            updated.append(category)
        self.categories = updated

        if self.selected is not None and self.selected.slug == category_slug:
            self.selected = self.find_category(category_slug)

        logger.debug(
            "Subcategory removed optimistically",
            category_slug=category_slug,
            subcategory_slug=subcategory_slug,
        )

    async def _compensate(self, key: str) -> None:
        """Refetch the canonical tree after a failed optimistic change.

        Concurrent compensations for the same key share one refetch, and a
        failing refetch is only logged so repeated failures do not pile up.
        """
        task = self._compensations.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_compensation(key))
            self._compensations[key] = task
        try:
            await asyncio.shield(task)
        finally:
            if task.done():
                self._compensations.pop(key, None)

    async def _run_compensation(self, key: str) -> None:
        try:
            await self.refresh_categories()
            logger.info("Optimistic change reverted", operation=key)
        except CatalogAdminError as e:
            logger.error("Reconciliation refetch failed", operation=key, error=str(e))

    async def _refresh_after_commit(self, identifier: str) -> bool:
        """Refetch categories and then the free pool after a committed change.

        Both refreshes are attempted. A failure is recorded on its collection
        and reported with a retry action; the committed change stands.

        Returns:
            True if the free pool was refreshed
        """
        failed: list[str] = []
        try:
            await self.refresh_categories()
        except CatalogAdminError:
            failed.append("categories")

        pool_fresh = True
        try:
            await self.refresh_free_subcategories()
        except CatalogAdminError:
            failed.append("free subcategories")
            pool_fresh = False

        if failed:
            self._notifier.error(
                f"Saved '{identifier}' but could not reload {' and '.join(failed)}",
                retry="refresh_categories" if failed[0] == "categories" else "refresh_free_subcategories",
            )
        return pool_fresh

    # -------------------------------------------------------------------------
    # Free subcategories
    # -------------------------------------------------------------------------

    async def assign_free_subcategory(
        self,
        free_subcategory_id: str,
        target_category_slug: str | None,
    ) -> None:
        """Move a free subcategory under a category.

        Raises:
            ValidationError: Missing or unknown target category
            NotFoundError: Free subcategory not in the pool
        """
        if not target_category_slug:
            raise ValidationError("Please select a category")
        if self.find_category(target_category_slug) is None:
            raise ValidationError(f"Unknown category '{target_category_slug}'")
        entry = self.find_free_subcategory(free_subcategory_id)
        if entry is None:
            raise NotFoundError(f"Free subcategory '{free_subcategory_id}' not found")

        target = Free(entry).assign(target_category_slug)

        async with self._mutation("assign_free_subcategory", slug=target_category_slug, free_subcategory_id=free_subcategory_id):
            try:
                await self._client.assign_free_subcategory(free_subcategory_id, target_category_slug)
            except CatalogAdminError as e:
                self._notifier.error(
                    f"Error assigning subcategory '{entry.slug}' to '{target_category_slug}': {e.message}"
                )
                raise

            self._notifier.success(
                f"Subcategory '{entry.slug}' assigned to '{target_category_slug}' successfully"
            )
            await self._refresh_after_commit(entry.slug)

            if self.selected is not None and self.selected.slug == target_category_slug:
                try:
                    fresh = await self._client.get_category(target_category_slug)
                except CatalogAdminError as e:
                    logger.warning(
                        "Selected category refresh failed",
                        slug=target_category_slug,
                        error=str(e),
                    )
                else:
                    if not self._discarded("selected_category"):
                        self.selected = fresh

        logger.info(
            "Free subcategory assigned",
            subcategory_slug=target.subcategory.slug,
            category_slug=target.category_slug,
        )

    async def delete_free_subcategory(
        self,
        free_subcategory_id: str,
        confirm: ConfirmCallback | None = None,
    ) -> bool:
        """Permanently delete a free subcategory.

        Returns:
            False if the user declined, True once deleted
        """
        if not (confirm or self._confirm)(CONFIRM_DELETE_FREE_SUBCATEGORY):
            logger.info(
                "Free subcategory deletion not confirmed",
                free_subcategory_id=free_subcategory_id,
            )
            return False

        async with self._mutation("delete_free_subcategory", free_subcategory_id=free_subcategory_id):
            try:
                await self._client.delete_free_subcategory(free_subcategory_id)
            except CatalogAdminError as e:
                self._notifier.error(
                    f"Error deleting free subcategory '{free_subcategory_id}': {e.message}"
                )
                raise

            self._notifier.success(f"Free subcategory '{free_subcategory_id}' deleted successfully")
            await self.refresh_free_subcategories()

        return True

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _mutation(self, operation: str, **identifiers: str | None) -> AsyncIterator[None]:
        """Serialize mutations; a second one while busy is rejected.

        Log lines emitted inside the block carry the operation and identifiers.
        """
        if self._closed:
            raise PreconditionError("Category manager is closed")
        if self._mutation_lock.locked():
            logger.warning("Mutation rejected while another is in flight", operation=operation)
            raise PreconditionError("Another catalog change is still in progress")

        async with self._mutation_lock:
            with operation_context(operation, **identifiers):
                logger.debug("Mutation started")
                yield

    def _discarded(self, what: str) -> bool:
        if self._closed:
            logger.debug("Discarding result after close", result=what)
            return True
        return False


# Singleton instance
_category_manager: CategoryManager | None = None


def get_category_manager() -> CategoryManager:
    """Get category manager singleton."""
    global _category_manager
    if _category_manager is None:
        _category_manager = CategoryManager(get_catalog_client(), get_notifier())
    return _category_manager
