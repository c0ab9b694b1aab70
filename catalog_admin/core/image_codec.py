"""Base64 image payload handling and local (Pillow) compression.

Every image payload that ends up persisted goes through
prepare_base64_payload(), which extracts, sanitizes, size-checks and pads it.
"""

import base64
import io
import re

from PIL import Image, ImageOps, UnidentifiedImageError, features

from catalog_admin.config import settings
from catalog_admin.core.errors import CompressionError, ImageTooLargeError, InvalidBase64Error
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.image import extract_base64_text

logger = get_logger(__name__)

MAX_BASE64_BYTES = 50 * 1024

# Smallest longest-edge the downscale ladder will go to
MIN_DIMENSION = 200

_NON_BASE64 = re.compile(r"[^A-Za-z0-9+/=]")
_BASE64_SHAPE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def build_data_url(mime_type: str, b64: str) -> str:
    return f"data:{mime_type};base64,{b64}"


def extract_base64(value: str | None) -> str:
    """Strip an optional `data:<mime>;base64,` prefix.

    >>> extract_base64("data:image/webp;base64,AAAA")
    'AAAA'
    """
    if not value:
        return ""
    return extract_base64_text(value)


def sanitize_base64(b64: str) -> str:
    """Remove whitespace and anything outside the base64 alphabet."""
    return _NON_BASE64.sub("", b64)


def validate_base64(b64: str, max_bytes: int = MAX_BASE64_BYTES) -> str:
    """Sanitize, size-check and pad a base64 payload.

    Args:
        b64: Raw base64 text (no data URL prefix)
        max_bytes: Maximum payload length; a payload of exactly this size passes

    Returns:
        Sanitized payload padded to a multiple of 4

    Raises:
        ImageTooLargeError: Payload longer than max_bytes
        InvalidBase64Error: Payload not shaped like base64 after sanitizing
    """
    clean = sanitize_base64(b64)

    if len(clean) > max_bytes:
        size_kb = len(clean) / 1024
        raise ImageTooLargeError(
            f"Image too large ({size_kb:.2f}KB). Maximum size is {max_bytes // 1024}KB. "
            "Please use a smaller image."
        )

    if not _BASE64_SHAPE.match(clean):
        raise InvalidBase64Error("Invalid base64 format")

    remainder = len(clean) % 4
    if remainder:
        clean += "=" * (4 - remainder)
    return clean


def prepare_base64_payload(value: str | None, max_bytes: int | None = None) -> str:
    """Extract and validate a payload for persistence."""
    limit = max_bytes if max_bytes is not None else settings.max_base64_bytes
    return validate_base64(extract_base64(value), limit)


def output_format() -> tuple[str, str]:
    """Preferred encoder as (PIL format, MIME type)."""
    if features.check("webp"):
        return "WEBP", "image/webp"
    return "JPEG", "image/jpeg"


def compress_locally(
    data: bytes,
    max_width: int | None = None,
    max_height: int | None = None,
    quality: int | None = None,
    min_quality: int | None = None,
    max_bytes: int | None = None,
) -> str:
    """Re-encode an image with Pillow until its base64 payload fits the cap.

    The image is oriented from EXIF and fitted into max_width x max_height.
    If the first encode is over the cap it is retried at a lower quality,
    then at the quality floor with smaller dimensions (x0.75 per step).

    Args:
        data: Encoded image bytes
        max_width: Bounding box width in pixels
        max_height: Bounding box height in pixels
        quality: Starting quality (1-100)
        min_quality: Quality floor
        max_bytes: Base64 payload cap

    Returns:
        Data URL of the re-encoded image

    Raises:
        CompressionError: If the bytes are not a decodable image
        ImageTooLargeError: If no attempt fits under the cap
    """
    max_width = max_width or settings.fallback_max_dimension
    max_height = max_height or settings.fallback_max_dimension
    quality = quality or settings.fallback_quality
    min_quality = min_quality or settings.fallback_min_quality
    max_bytes = max_bytes or settings.max_base64_bytes

    try:
        with Image.open(io.BytesIO(data)) as src:
            img = ImageOps.exif_transpose(src)
            img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise CompressionError(f"Failed to load image: {e}") from e

    img = _fit(img, max_width, max_height)
    fmt, mime_type = output_format()

    b64 = _encode(img, fmt, quality)
    if len(b64) <= max_bytes:
        return build_data_url(mime_type, b64)

    # Lower quality, then halve the step until the floor
    step_quality = max(min_quality, int(quality * 0.7))
    while True:
        b64 = _encode(img, fmt, step_quality)
        if len(b64) <= max_bytes:
            logger.debug("Compressed with reduced quality", quality=step_quality)
            return build_data_url(mime_type, b64)
        if step_quality <= min_quality:
            break
        step_quality = max(min_quality, step_quality - max(1, (quality - step_quality) // 2))

    # Downscale at the quality floor
    while max(img.size) > MIN_DIMENSION:
        scale = max(MIN_DIMENSION / max(img.size), 0.75)
        img = img.resize(
            (max(1, int(img.width * scale)), max(1, int(img.height * scale))),
            Image.Resampling.LANCZOS,
        )
        b64 = _encode(img, fmt, min_quality)
        if len(b64) <= max_bytes:
            logger.debug("Compressed with downscale", width=img.width, height=img.height)
            return build_data_url(mime_type, b64)

    raise ImageTooLargeError(
        f"Image too large ({len(b64) / 1024:.2f}KB) even after compression. "
        f"Maximum size is {max_bytes // 1024}KB."
    )


def _fit(img: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Downscale into the bounding box keeping the aspect ratio. Never upscales."""
    width, height = img.size
    ratio = min(max_width / width, max_height / height, 1.0)
    if ratio >= 1.0:
        return img
    return img.resize(
        (max(1, int(width * ratio)), max(1, int(height * ratio))),
        Image.Resampling.LANCZOS,
    )


def _encode(img: Image.Image, fmt: str, quality: int) -> str:
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    elif fmt == "WEBP" and img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

    buffer = io.BytesIO()
    if fmt == "JPEG":
        img.save(buffer, format=fmt, quality=quality, optimize=True)
    else:
        img.save(buffer, format=fmt, quality=quality, method=4)
    return base64.b64encode(buffer.getvalue()).decode("ascii")
