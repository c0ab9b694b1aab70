"""Category schemas.

Field names match the persistence API JSON (camelCase), the same way the
backend DTOs are mirrored elsewhere in this package.
"""

from pydantic import BaseModel, ConfigDict, Field


class Subcategory(BaseModel):
    """Subcategory owned by exactly one category."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    slug: str
    image: str | None = None
    icon: str | None = None
    isActive: bool = True


class Category(BaseModel):
    """Top-level product grouping with its ordered subcategories."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    slug: str
    image: str | None = None
    subcategories: list[Subcategory] = Field(default_factory=list)
    isActive: bool = True

    def subcategory_slugs(self) -> list[str]:
        """Slugs of the owned subcategories, in display order."""
        return [sub.slug for sub in self.subcategories]


class FreeSubcategory(BaseModel):
    """Subcategory whose owning category was deleted.

    Carries provenance of the category it was demoted from.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    name: str
    slug: str
    image: str | None = None
    icon: str | None = None
    originalCategoryName: str | None = None
    originalCategorySlug: str | None = None
    productCount: int = 0


class CategoryCreate(BaseModel):
    """Payload for creating a category."""

    name: str = Field(min_length=1)
    slug: str | None = None
    image: str | None = None


class CategoryUpdate(BaseModel):
    """Partial category update. Subcategories are never part of it."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    slug: str | None = None
    image: str | None = None
    isActive: bool | None = None


class SubcategoryCreate(BaseModel):
    """Payload for adding a subcategory under a category."""

    name: str = Field(min_length=1)
    subcategorySlug: str | None = None
    image: str | None = None
    icon: str | None = None


class SubcategoryUpdate(BaseModel):
    """Partial subcategory update."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    slug: str | None = None
    image: str | None = None
    icon: str | None = None
    isActive: bool | None = None


class AssignFreeSubcategoryRequest(BaseModel):
    """Target category for a free subcategory."""

    categorySlug: str = ""


class CatalogSnapshot(BaseModel):
    """Working copy of both collections with per-collection load errors."""

    categories: list[Category] = Field(default_factory=list)
    freeSubcategories: list[FreeSubcategory] = Field(default_factory=list)
    selectedSlug: str | None = None
    categoriesError: str | None = None
    freeSubcategoriesError: str | None = None
