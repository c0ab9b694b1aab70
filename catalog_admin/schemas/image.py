"""Image schemas.

Incoming images arrive in several shapes (a bare URL, a freshly uploaded
file, an image already stored on a product). They are modelled as a
discriminated union on the `type` field so that one normalization function
can map every variant to a working record.

Example JSON:
    [
        "https://cdn.example.com/a.jpg",
        {"url": "https://cdn.example.com/b.jpg", "isPrimary": true},
        {"type": "upload", "filename": "c.png", "contentType": "image/png", "data": "iVBORw0..."}
    ]
"""

from __future__ import annotations

import binascii
from base64 import b64decode
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def extract_base64_text(value: str) -> str:
    """Drop a `data:<mime>;base64,` prefix if present."""
    marker = value.find("base64,")
    return value[marker + len("base64,"):] if marker != -1 else value


class UrlSource(BaseModel):
    """Image referenced by URL only."""

    type: Literal["url"] = "url"
    url: str


class UploadSource(BaseModel):
    """Raw file selected or dropped by the user.

    `data` is raw bytes; in JSON it travels base64-encoded.
    """

    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="base64")

    type: Literal["upload"] = "upload"
    filename: str = ""
    contentType: str = ""
    data: bytes = b""

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64_data(cls, v: Any) -> Any:
        """Accept base64 text for `data` (JSON bodies)."""
        if isinstance(v, str):
            try:
                return b64decode(extract_base64_text(v), validate=False)
            except binascii.Error as e:
                raise ValueError(f"data is not valid base64: {e}") from e
        return v

    @property
    def is_image(self) -> bool:
        return self.contentType.startswith("image/")


class ExistingSource(BaseModel):
    """Image record already attached to a product."""

    type: Literal["existing"] = "existing"
    url: str = ""
    isPrimary: bool = False
    alt: str = ""


# Discriminated union of all image input shapes
ImageSource = Annotated[
    UrlSource | UploadSource | ExistingSource,
    Field(discriminator="type"),
]

_image_source_adapter: TypeAdapter[UrlSource | UploadSource | ExistingSource] = TypeAdapter(
    ImageSource
)


def coerce_image_source(value: Any) -> UrlSource | UploadSource | ExistingSource:
    """Map a loosely-typed image input to its tagged variant.

    Args:
        value: Bare URL string, untyped mapping {url, isPrimary, alt},
            typed mapping, or an already-tagged source

    Returns:
        Tagged image source

    Raises:
        TypeError: If the value has none of the accepted shapes
    """
    if isinstance(value, (UrlSource, UploadSource, ExistingSource)):
        return value
    if isinstance(value, str):
        return UrlSource(url=value)
    if isinstance(value, Mapping):
        if "type" in value:
            return _image_source_adapter.validate_python(dict(value))
        return ExistingSource.model_validate(dict(value))
    raise TypeError(f"Unsupported image input: {type(value).__name__}")


class PersistedImage(BaseModel):
    """Image object in the shape the product API stores."""

    url: str
    isPrimary: bool = False
    alt: str = ""


class CompressedPayload(BaseModel):
    """Result of the remote compression service for one image."""

    model_config = ConfigDict(extra="ignore")

    mimeType: str = "image/webp"
    base64: str = ""
    originalName: str | None = None
    error: str | None = None


class UploadOutcome(BaseModel):
    """Per-file result of a batch upload, aligned to input order."""

    filename: str
    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.url)


class PrepareImagesRequest(BaseModel):
    """Images of a product form to prepare for saving.

    Accepts the same loose shapes as the product form: bare URLs, untyped
    `{url, isPrimary, alt}` objects and tagged sources.
    """

    images: list[Any] = Field(default_factory=list)

    @field_validator("images")
    @classmethod
    def coerce_images(cls, v: list[Any]) -> list[UrlSource | UploadSource | ExistingSource]:
        try:
            return [coerce_image_source(item) for item in v]
        except TypeError as e:
            raise ValueError(str(e)) from e


class CompressResponse(BaseModel):
    """Compressed image as a data URL."""

    dataUrl: str
    base64Bytes: int


class UploadResponse(BaseModel):
    """Images committed by an upload plus the files that failed."""

    images: list[PersistedImage] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
