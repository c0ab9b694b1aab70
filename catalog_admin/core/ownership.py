"""Ownership states of a subcategory.

    OWNED(category) --delete category--> FREE --assign--> OWNED(new category)
    FREE --delete--> GONE
    OWNED --delete subcategory--> GONE

Each state only exposes the transitions that are legal from it: there is no
`assign` on an owned subcategory and no `demote` on a free one.
"""

from dataclasses import dataclass

from catalog_admin.schemas.category import Category, FreeSubcategory, Subcategory


@dataclass(frozen=True)
class Gone:
    """Terminal state: the subcategory no longer exists."""

    slug: str


@dataclass(frozen=True)
class Owned:
    """Subcategory attached to exactly one category."""

    subcategory: Subcategory
    category_slug: str

    def demote(self, category: Category, free_id: str = "") -> "Free":
        """Category deletion: strip ownership and record provenance.

        Args:
            category: The category being deleted (must own this subcategory)
            free_id: Identifier assigned to the pool entry

        Returns:
            Free state carrying originalCategoryName/originalCategorySlug
        """
        if category.slug != self.category_slug:
            raise ValueError(
                f"Subcategory '{self.subcategory.slug}' is owned by "
                f"'{self.category_slug}', not '{category.slug}'"
            )
        return Free(
            FreeSubcategory(
                _id=free_id,
                name=self.subcategory.name,
                slug=self.subcategory.slug,
                image=self.subcategory.image,
                icon=self.subcategory.icon,
                originalCategoryName=category.name,
                originalCategorySlug=category.slug,
            )
        )

    def delete(self) -> Gone:
        """Direct subcategory deletion. No demotion."""
        return Gone(self.subcategory.slug)


@dataclass(frozen=True)
class Free:
    """Subcategory in the free pool, awaiting reassignment or deletion."""

    entry: FreeSubcategory

    def assign(self, category_slug: str) -> Owned:
        """Attach to a category, discarding provenance."""
        if not category_slug:
            raise ValueError("A target category slug is required")
        return Owned(
            subcategory=Subcategory(
                name=self.entry.name,
                slug=self.entry.slug,
                image=self.entry.image,
                icon=self.entry.icon,
            ),
            category_slug=category_slug,
        )

    def delete(self) -> Gone:
        """Permanent deletion from the pool."""
        return Gone(self.entry.slug)


SubcategoryState = Owned | Free | Gone


def owned_states(category: Category) -> list[Owned]:
    """Ownership states of every subcategory of a category."""
    return [Owned(subcategory=sub, category_slug=category.slug) for sub in category.subcategories]
