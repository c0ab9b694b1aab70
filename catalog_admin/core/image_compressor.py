"""Two-tier image compression for persistence.

Tier 1 is the remote compression service. When it fails, or returns a
payload over the size cap, the image is re-encoded locally with Pillow.
"""

import asyncio

from catalog_admin.config import settings
from catalog_admin.core.errors import CatalogAdminError, CompressionError
from catalog_admin.core.image_codec import build_data_url, compress_locally, sanitize_base64
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.image import CompressedPayload, UploadSource
from catalog_admin.services.image_host_client import ImageHostClient, get_image_host_client

logger = get_logger(__name__)


class ImageCompressor:
    """Compress uploads to data URLs that fit the base64 cap."""

    def __init__(
        self,
        host: ImageHostClient,
        quality: int | None = None,
        max_dimension: int | None = None,
        fallback_quality: int | None = None,
        min_quality: int | None = None,
        max_bytes: int | None = None,
    ) -> None:
        self._host = host
        self.quality = quality or settings.compression_quality
        self.max_dimension = max_dimension or settings.fallback_max_dimension
        self.fallback_quality = fallback_quality or settings.fallback_quality
        self.min_quality = min_quality or settings.fallback_min_quality
        self.max_bytes = max_bytes or settings.max_base64_bytes

    async def compress(self, upload: UploadSource, quality: int | None = None) -> str:
        """Compress one image.

        Args:
            upload: Raw image file
            quality: Remote compression quality (defaults to compression_quality)

        Returns:
            Data URL of the compressed image

        Raises:
            CompressionError: If both tiers fail
        """
        try:
            payload = await self._host.compress_image(upload, quality or self.quality)
        except CatalogAdminError as e:
            logger.warning(
                "Remote compression failed, using local fallback",
                filename=upload.filename,
                error=str(e),
            )
            return await self._fallback(upload, remote_error=str(e))

        return await self._accept(upload, payload)

    async def compress_many(
        self,
        uploads: list[UploadSource],
        quality: int | None = None,
    ) -> list[str]:
        """Compress several images with one batch request.

        Items the batch failed on fall back to local compression individually.
        If the batch request itself fails, every item falls back.

        Returns:
            Data URLs in input order

        Raises:
            CompressionError: If any image fails both tiers
        """
        if not uploads:
            return []

        try:
            payloads = await self._host.compress_images(uploads, quality or self.quality)
        except CatalogAdminError as e:
            logger.warning(
                "Remote batch compression failed, using local fallback",
                files=len(uploads),
                error=str(e),
            )
            payloads = [
                CompressedPayload(originalName=upload.filename, error=str(e)) for upload in uploads
            ]

        async def resolve(upload: UploadSource, payload: CompressedPayload) -> str:
            if payload.error:
                logger.warning(
                    "Remote compression failed for item, using local fallback",
                    filename=upload.filename,
                    error=payload.error,
                )
                return await self._fallback(upload, remote_error=payload.error)
            return await self._accept(upload, payload)

        results = await asyncio.gather(
            *(resolve(upload, payload) for upload, payload in zip(uploads, payloads))
        )
        logger.info("Batch compression completed", files=len(results))
        return list(results)

    async def _accept(self, upload: UploadSource, payload: CompressedPayload) -> str:
        """Use a remote payload, re-encoding aggressively if it is over the cap."""
        b64 = sanitize_base64(payload.base64)
        if len(b64) <= self.max_bytes:
            return build_data_url(payload.mimeType, b64)

        logger.warning(
            "Remote result over size cap, re-encoding locally",
            filename=upload.filename,
            base64_bytes=len(b64),
            max_bytes=self.max_bytes,
        )
        return await self._fallback(
            upload,
            remote_error=f"result too large ({len(b64) / 1024:.2f}KB)",
            quality=self.min_quality,
        )

    async def _fallback(
        self,
        upload: UploadSource,
        remote_error: str,
        quality: int | None = None,
    ) -> str:
        """Re-encode locally with Pillow in a worker thread."""
        try:
            data_url = await asyncio.to_thread(
                compress_locally,
                upload.data,
                max_width=self.max_dimension,
                max_height=self.max_dimension,
                quality=quality or self.fallback_quality,
                min_quality=self.min_quality,
                max_bytes=self.max_bytes,
            )
        except CatalogAdminError as e:
            logger.error(
                "Local compression fallback failed",
                filename=upload.filename,
                error=str(e),
            )
            raise CompressionError(
                f"Image compression failed: {remote_error}. Fallback also failed: {e.message}"
            ) from e

        logger.info("Image compressed locally", filename=upload.filename)
        return data_url


# Singleton instance
_image_compressor: ImageCompressor | None = None


def get_image_compressor() -> ImageCompressor:
    """Get image compressor singleton."""
    global _image_compressor
    if _image_compressor is None:
        _image_compressor = ImageCompressor(get_image_host_client())
    return _image_compressor
