"""Working list of product images.

Holds the ordered images of one product form. Exactly one record is primary
whenever the list is non-empty, and the list never holds more than
`max_images` records.
"""

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from catalog_admin.config import settings
from catalog_admin.core.errors import CatalogAdminError, PartialBatchError, ValidationError
from catalog_admin.core.notifications import Notifier
from catalog_admin.infra.logging import get_logger, operation_context
from catalog_admin.schemas.image import (
    ExistingSource,
    PersistedImage,
    UploadSource,
    UrlSource,
    coerce_image_source,
)
from catalog_admin.services.image_host_client import ImageHostClient, get_image_host_client

logger = get_logger(__name__)

ChangeCallback = Callable[[list[PersistedImage]], None]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ImageRecord:
    """One image slot.

    Attributes:
        id: Locally generated identifier
        url: Hosted URL, empty for blank slots and pending uploads
        is_primary: Primary image flag
        upload: Raw file not yet hosted
        preview: What is displayed (hosted URL or data URL)
        alt: Alternative text
    """

    id: str
    url: str = ""
    is_primary: bool = False
    upload: UploadSource | None = None
    preview: str = ""
    alt: str = ""

    @property
    def is_blank(self) -> bool:
        return not self.url and not self.preview and self.upload is None

    def with_primary(self, is_primary: bool) -> "ImageRecord":
        return replace(self, is_primary=is_primary)

    def with_url(self, url: str) -> "ImageRecord":
        return replace(self, url=url, preview=url if url else self.preview)


def normalize_images(images: Sequence[Any] | None) -> list[ImageRecord]:
    """Build working records from loosely-typed image inputs.

    The first explicitly flagged entry is primary. When no entry is flagged
    the first one is.
    """
    sources = [coerce_image_source(image) for image in images or []]

    flagged = next(
        (i for i, s in enumerate(sources) if isinstance(s, ExistingSource) and s.isPrimary),
        None,
    )
    primary_index = flagged if flagged is not None else 0

    records: list[ImageRecord] = []
    for index, source in enumerate(sources):
        is_primary = index == primary_index
        if isinstance(source, UploadSource):
            records.append(
                ImageRecord(id=_new_id(), is_primary=is_primary, upload=source, alt=source.filename)
            )
        elif isinstance(source, UrlSource):
            records.append(
                ImageRecord(id=_new_id(), url=source.url, is_primary=is_primary, preview=source.url)
            )
        else:
            records.append(
                ImageRecord(
                    id=_new_id(),
                    url=source.url,
                    is_primary=is_primary,
                    preview=source.url,
                    alt=source.alt,
                )
            )
    return records


class ImageList:
    """Ordered, bounded image list with a single primary."""

    def __init__(
        self,
        images: Sequence[Any] | None = None,
        host: ImageHostClient | None = None,
        notifier: Notifier | None = None,
        max_images: int | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._host = host or get_image_host_client()
        self._notifier = notifier or Notifier()
        self.max_images = max_images or settings.max_images
        self._on_change = on_change
        self._external = images
        self._records = normalize_images(images)

    @property
    def records(self) -> list[ImageRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def free_slots(self) -> int:
        return max(0, self.max_images - len(self._records))

    def primary(self) -> ImageRecord | None:
        return next((r for r in self._records if r.is_primary), None)

    def sync_external(self, images: Sequence[Any] | None) -> bool:
        """Re-normalize from an external list if it is a different object.

        Returns:
            True if the working list was rebuilt
        """
        if images is self._external:
            return False
        self._external = images
        self._records = normalize_images(images)
        return True

    async def ingest_files(self, files: Sequence[UploadSource]) -> list[ImageRecord]:
        """Upload selected files and append the hosted images.

        Files beyond the free slots are ignored; non-image files are dropped.
        Successful uploads are committed even when others fail.

        Returns:
            Records appended to the list

        Raises:
            ValidationError: List full, or no image files selected
            PartialBatchError: Some uploads failed (successes already committed)
        """
        free = self.free_slots
        if free <= 0:
            raise ValidationError(f"Maximum {self.max_images} images allowed")

        if len(files) > free:
            logger.warning("Too many files selected, truncating", selected=len(files), free_slots=free)
        candidates = list(files)[:free]

        uploads: list[UploadSource] = []
        for upload in candidates:
            if upload.is_image:
                uploads.append(upload)
            else:
                logger.warning(
                    "Skipping non-image file",
                    filename=upload.filename,
                    content_type=upload.contentType,
                )

        if not uploads:
            self._notifier.error("Please select image files only")
            raise ValidationError("Please select image files only")

        with operation_context("upload_images", files=len(uploads)):
            try:
                outcomes = await self._host.upload_images(
                    uploads, folder=settings.products_upload_folder
                )
            except CatalogAdminError as e:
                self._notifier.error(f"Error uploading images: {e.message}")
                raise

        was_empty = not self._records
        added: list[ImageRecord] = []
        failed: dict[str, str] = {}
        for outcome in outcomes:
            if not outcome.ok:
                failed[outcome.filename] = outcome.error or "Upload failed"
                continue
            added.append(
                ImageRecord(
                    id=_new_id(),
                    url=outcome.url or "",
                    is_primary=was_empty and not added,
                    preview=outcome.url or "",
                    alt=outcome.filename,
                )
            )

        if added:
            self._records = [*self._records, *added]
            self._changed()
            self._notifier.success(f"{len(added)} image(s) uploaded successfully")

        if failed:
            message = f"{len(failed)} of {len(outcomes)} images failed to upload: {', '.join(failed)}"
            self._notifier.error(message)
            raise PartialBatchError(message, succeeded=[r.alt for r in added], failed=failed)

        return added

    def reorder(self, dragged_index: int, target_index: int) -> None:
        """Move a record; no-op for equal or out-of-range indices."""
        size = len(self._records)
        if dragged_index == target_index:
            return
        if not (0 <= dragged_index < size and 0 <= target_index < size):
            return
        records = list(self._records)
        moved = records.pop(dragged_index)
        records.insert(target_index, moved)
        self._records = records
        self._changed()

    def set_primary(self, image_id: str) -> None:
        """Make one record primary. Unknown ids are ignored."""
        if not any(r.id == image_id for r in self._records):
            return
        self._records = [r.with_primary(r.id == image_id) for r in self._records]
        self._changed()

    def remove(self, image_id: str) -> None:
        """Remove a record, promoting the new first record if it was primary."""
        removed = next((r for r in self._records if r.id == image_id), None)
        if removed is None:
            return
        records = [r for r in self._records if r.id != image_id]
        if removed.is_primary and records:
            records[0] = records[0].with_primary(True)
        self._records = records
        self._changed()

    def add_blank_slot(self) -> ImageRecord:
        """Append an empty slot to be filled with a URL later."""
        if self.free_slots <= 0:
            raise ValidationError(f"Maximum {self.max_images} images allowed")
        record = ImageRecord(id=_new_id(), is_primary=not self._records)
        self._records = [*self._records, record]
        self._changed()
        return record

    def update_url(self, image_id: str, url: str) -> None:
        self._records = [r.with_url(url) if r.id == image_id else r for r in self._records]
        self._changed()

    def to_persisted(self) -> list[PersistedImage]:
        """Upstream representation of the list."""
        return [
            PersistedImage(url=r.url or r.preview, isPrimary=r.is_primary, alt=r.alt)
            for r in self._records
        ]

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.to_persisted())


async def upload_single_image(
    host: ImageHostClient,
    upload: UploadSource,
    folder: str | None = None,
) -> str:
    """Upload one image (category images) and return its URL.

    Raises:
        ValidationError: If the file is not an image
    """
    if not upload.is_image:
        raise ValidationError("Please select an image file")
    return await host.upload_image(upload, folder=folder or settings.categories_upload_folder)
