"""Image endpoints.

Upload files to the image host, compress single images and prepare a
product's image list for saving.
"""

from fastapi import APIRouter, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from catalog_admin.api.deps import Compressor, ImageHost, Notifications, read_upload
from catalog_admin.core.errors import PartialBatchError
from catalog_admin.core.image_codec import extract_base64
from catalog_admin.core.image_list import ImageList, normalize_images, upload_single_image
from catalog_admin.core.image_persistence import prepare_images_for_save
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.image import (
    CompressResponse,
    PersistedImage,
    PrepareImagesRequest,
    UploadResponse,
)

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={status.HTTP_207_MULTI_STATUS: {"model": UploadResponse}},
    summary="Upload product images",
)
async def upload_images(
    host: ImageHost,
    notifier: Notifications,
    files: list[UploadFile] = File(..., description="Image files"),
) -> UploadResponse | JSONResponse:
    """Upload files into a new image list.

    Non-image files are skipped. When some uploads fail, the successful
    ones are still returned with status 207 and the failures listed.
    """
    uploads = [await read_upload(file) for file in files]
    images = ImageList(host=host, notifier=notifier)

    try:
        await images.ingest_files(uploads)
    except PartialBatchError as e:
        body = UploadResponse(images=images.to_persisted(), failed=e.failed)
        return JSONResponse(status_code=status.HTTP_207_MULTI_STATUS, content=body.model_dump())

    return UploadResponse(images=images.to_persisted())


@router.post("/category-image", summary="Upload a category image")
async def upload_category_image(
    host: ImageHost,
    file: UploadFile = File(..., description="Image file"),
) -> dict[str, str]:
    url = await upload_single_image(host, await read_upload(file))
    return {"url": url}


@router.post("/compress", response_model=CompressResponse, summary="Compress one image")
async def compress_image(
    compressor: Compressor,
    file: UploadFile = File(..., description="Image file"),
    quality: int | None = Form(default=None, ge=1, le=100),
) -> CompressResponse:
    """Compress an image to a data URL under the size cap."""
    data_url = await compressor.compress(await read_upload(file), quality)
    return CompressResponse(dataUrl=data_url, base64Bytes=len(extract_base64(data_url)))


@router.post("/prepare", response_model=list[PersistedImage], summary="Prepare images for saving")
async def prepare_images(
    request: PrepareImagesRequest,
    compressor: Compressor,
) -> list[PersistedImage]:
    """Resolve a product's images into the stored representation.

    Uploads are compressed into base64 data URLs; any failure aborts.
    """
    records = normalize_images(request.images)
    images = await prepare_images_for_save(records, compressor)
    logger.info("Images prepared", count=len(images))
    return images
