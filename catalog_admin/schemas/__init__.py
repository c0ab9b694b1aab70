"""Pydantic schemas for request/response validation."""

from catalog_admin.schemas.category import (
    AssignFreeSubcategoryRequest,
    CatalogSnapshot,
    Category,
    CategoryCreate,
    CategoryUpdate,
    FreeSubcategory,
    Subcategory,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from catalog_admin.schemas.common import ErrorResponse, HealthResponse, NotificationItem
from catalog_admin.schemas.image import (
    CompressedPayload,
    ExistingSource,
    ImageSource,
    PersistedImage,
    UploadOutcome,
    UploadSource,
    UrlSource,
    coerce_image_source,
)

__all__ = [
    "AssignFreeSubcategoryRequest",
    "CatalogSnapshot",
    "Category",
    "CategoryCreate",
    "CategoryUpdate",
    "CompressedPayload",
    "ErrorResponse",
    "ExistingSource",
    "FreeSubcategory",
    "HealthResponse",
    "ImageSource",
    "NotificationItem",
    "PersistedImage",
    "Subcategory",
    "SubcategoryCreate",
    "SubcategoryUpdate",
    "UploadOutcome",
    "UploadSource",
    "UrlSource",
    "coerce_image_source",
]
