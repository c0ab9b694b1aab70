"""Save-time image preparation.

Turns the working image list into the objects the product API stores.
Pending uploads are compressed into base64 data URLs in one batch, existing
data URLs are re-validated, and hosted URLs are kept. A single failure aborts
the save.
"""

from collections.abc import Mapping, Sequence

from catalog_admin.core.errors import (
    CatalogAdminError,
    CompressionError,
    ImageProcessingError,
    TransientError,
    ValidationError,
)
from catalog_admin.core.image_codec import build_data_url, prepare_base64_payload
from catalog_admin.core.image_compressor import ImageCompressor
from catalog_admin.core.image_list import ImageRecord
from catalog_admin.infra.logging import get_logger, operation_context
from catalog_admin.schemas.image import PersistedImage

logger = get_logger(__name__)


def _mime_type(data_url: str) -> str:
    """MIME type of a `data:` URL, defaulting to WebP."""
    header, _, _ = data_url.partition(";")
    return header[len("data:"):] or "image/webp"


def _resolve_url(record: ImageRecord, compressed: Mapping[str, str]) -> str:
    if record.upload is not None:
        data_url = compressed[record.id]
        return build_data_url(_mime_type(data_url), prepare_base64_payload(data_url))

    source = record.preview or record.url
    if source.startswith("data:"):
        return build_data_url(_mime_type(source), prepare_base64_payload(source))
    if source.startswith(("http://", "https://")):
        return source

    scheme = source.split(":", 1)[0]
    raise ValidationError(f"Unsupported image reference '{scheme}:' for '{record.alt or record.id}'")


async def prepare_images_for_save(
    records: Sequence[ImageRecord],
    compressor: ImageCompressor,
) -> list[PersistedImage]:
    """Resolve every record to a persistable image.

    Pending uploads go to the compressor as one batch; the other records are
    validated in place.

    Args:
        records: Working image records, in display order
        compressor: Compressor used for pending uploads

    Returns:
        Persisted images in input order with exactly one primary

    Raises:
        ImageProcessingError: If any image could not be prepared
    """
    pending = [r for r in records if not r.is_blank]
    if len(pending) != len(records):
        logger.debug("Skipping blank image slots", skipped=len(records) - len(pending))
    if not pending:
        return []

    uploads = [r for r in pending if r.upload is not None]
    compressed: dict[str, str] = {}
    if uploads:
        with operation_context("prepare_images", uploads=len(uploads)):
            try:
                data_urls = await compressor.compress_many([r.upload for r in uploads])
            except CatalogAdminError as e:
                logger.error("Image compression failed", error=str(e))
                raise ImageProcessingError(
                    f"Error processing images: {e.message}",
                    retryable=isinstance(e, (TransientError, CompressionError)),
                ) from e
        compressed = {record.id: url for record, url in zip(uploads, data_urls)}

    urls: list[str] = []
    errors: list[str] = []
    for record in pending:
        try:
            urls.append(_resolve_url(record, compressed))
        except CatalogAdminError as e:
            errors.append(f"{record.alt or record.id}: {e.message}")

    if errors:
        logger.error("Image preparation failed", failed=len(errors), total=len(pending))
        raise ImageProcessingError(f"Error processing images: {'; '.join(errors)}")

    primary_index = next((i for i, r in enumerate(pending) if r.is_primary), 0)
    images = [
        PersistedImage(url=url, isPrimary=index == primary_index, alt=record.alt)
        for index, (record, url) in enumerate(zip(pending, urls))
    ]

    logger.info("Images prepared for save", count=len(images))
    return images
