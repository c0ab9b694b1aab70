"""Image hosting and compression service client.

Uploads raw files (returns one public URL per accepted file) and requests
server-side compression (returns {mimeType, base64} per image). Batch calls
report per-item errors; results are realigned to input order here so callers
never have to guess which file a result belongs to.
"""

from typing import Any

import pydantic

from catalog_admin.config import settings
from catalog_admin.core.errors import TransientError
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.image import CompressedPayload, UploadOutcome, UploadSource
from catalog_admin.services.api_client import ApiClient

logger = get_logger(__name__)

SINGLE_ENDPOINT = "/upload/compress-image"
BATCH_ENDPOINT = "/upload/compress-images"


class ImageHostClient(ApiClient):
    """HTTP client for the image hosting / compression endpoints."""

    async def upload_image(
        self,
        upload: UploadSource,
        folder: str | None = None,
        filename: str | None = None,
    ) -> str:
        """Upload a single file.

        Args:
            upload: File to upload
            folder: Folder hint (defaults to the categories folder)
            filename: Optional target filename

        Returns:
            Public URL of the hosted image

        Raises:
            TransientError: If the response carries no URL
        """
        form: dict[str, str] = {"folder": folder or settings.categories_upload_folder}
        if filename:
            form["filename"] = filename

        body = await self._request(
            "POST",
            SINGLE_ENDPOINT,
            data=form,
            files={"image": self._file_tuple(upload)},
        )

        data = body.get("data")
        if not body.get("success") or not isinstance(data, dict) or not data.get("url"):
            logger.error("Invalid upload response", filename=upload.filename)
            raise TransientError("Invalid response from upload service")

        logger.info("Image uploaded", filename=upload.filename, folder=form["folder"])
        return data["url"]

    async def upload_images(
        self,
        uploads: list[UploadSource],
        folder: str | None = None,
    ) -> list[UploadOutcome]:
        """Upload several files in one request.

        Args:
            uploads: Files to upload
            folder: Folder hint (defaults to the products folder)

        Returns:
            One outcome per input file, in input order
        """
        if not uploads:
            return []

        items = await self._post_batch(
            uploads,
            {"folder": folder or settings.products_upload_folder},
            "upload",
        )
        aligned = self._align(uploads, items)

        outcomes: list[UploadOutcome] = []
        for upload, item in zip(uploads, aligned):
            if item is None:
                outcomes.append(UploadOutcome(filename=upload.filename, error="No result returned"))
            elif item.get("error") or not item.get("url"):
                outcomes.append(
                    UploadOutcome(
                        filename=upload.filename,
                        error=str(item.get("error") or "No URL returned"),
                    )
                )
            else:
                outcomes.append(UploadOutcome(filename=upload.filename, url=item["url"]))

        failed = [o.filename for o in outcomes if not o.ok]
        if failed:
            logger.warning("Some uploads failed", failed_count=len(failed), failed=failed)

        logger.info(
            "Batch upload completed",
            total=len(outcomes),
            succeeded=len(outcomes) - len(failed),
        )
        return outcomes

    async def compress_image(self, upload: UploadSource, quality: int) -> CompressedPayload:
        """Compress one image server-side.

        Raises:
            TransientError: If the response carries no payload
        """
        body = await self._request(
            "POST",
            SINGLE_ENDPOINT,
            data={"quality": str(quality)},
            files={"image": self._file_tuple(upload)},
        )

        data = body.get("data")
        if not body.get("success") or not isinstance(data, dict) or not data.get("base64"):
            raise TransientError("Invalid response from compression service")

        try:
            payload = CompressedPayload.model_validate(data)
        except pydantic.ValidationError as e:
            logger.error(
                "Malformed compression response",
                filename=upload.filename,
                error=str(e),
            )
            raise TransientError("Invalid response from compression service") from e

        logger.debug(
            "Image compressed remotely",
            filename=upload.filename,
            base64_bytes=len(payload.base64),
        )
        return payload

    async def compress_images(
        self, uploads: list[UploadSource], quality: int
    ) -> list[CompressedPayload]:
        """Compress several images server-side.

        Returns:
            One payload per input file, in input order. Items the service
            failed on carry `error` and an empty `base64`.
        """
        if not uploads:
            return []

        items = await self._post_batch(uploads, {"quality": str(quality)}, "compression")
        aligned = self._align(uploads, items)

        payloads: list[CompressedPayload] = []
        for upload, item in zip(uploads, aligned):
            if item is None:
                payloads.append(
                    CompressedPayload(originalName=upload.filename, error="No result returned")
                )
                continue
            try:
                payload = CompressedPayload.model_validate(item)
            except pydantic.ValidationError as e:
                logger.warning(
                    "Malformed compression batch item",
                    filename=upload.filename,
                    error=str(e),
                )
                payload = CompressedPayload(
                    originalName=upload.filename,
                    error="Invalid response from compression service",
                )
            if not payload.error and not payload.base64:
                payload = payload.model_copy(update={"error": "Empty payload"})
            payloads.append(payload)
        return payloads

    async def _post_batch(
        self,
        uploads: list[UploadSource],
        form: dict[str, str],
        service: str,
    ) -> list[dict[str, Any]]:
        """POST a multipart batch and return the raw `data` list."""
        files = [("images", self._file_tuple(upload)) for upload in uploads]
        body = await self._request("POST", BATCH_ENDPOINT, data=form, files=files)

        data = body.get("data")
        if not body.get("success") or not isinstance(data, list):
            logger.error(f"Invalid {service} batch response", files=len(uploads))
            raise TransientError(f"Invalid response from {service} service")
        return data

    def _align(
        self,
        uploads: list[UploadSource],
        items: list[dict[str, Any]],
    ) -> list[dict[str, Any] | None]:
        """Match batch result items to input files.

        Uses position when the counts agree, otherwise `originalName`.
        """
        if len(items) == len(uploads):
            return [item if isinstance(item, dict) else None for item in items]

        by_name: dict[str, list[dict[str, Any]]] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            by_name.setdefault(str(item.get("originalName", "")), []).append(item)

        aligned: list[dict[str, Any] | None] = []
        for upload in uploads:
            matches = by_name.get(upload.filename)
            aligned.append(matches.pop(0) if matches else None)
        return aligned

    @staticmethod
    def _file_tuple(upload: UploadSource) -> tuple[str, bytes, str]:
        return (
            upload.filename or "image",
            upload.data,
            upload.contentType or "application/octet-stream",
        )


# Singleton instance
_image_host_client: ImageHostClient | None = None


def get_image_host_client() -> ImageHostClient:
    """Get image host client singleton."""
    global _image_host_client
    if _image_host_client is None:
        _image_host_client = ImageHostClient()
    return _image_host_client
