"""Application configuration using Pydantic Settings.

Reads configuration from environment variables with sensible defaults.
The persistence API host is selected by a single base URL setting.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    environment: Literal["prod", "staging", "dev"] = Field(
        default="dev",
        description="Environment name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # =========================================================================
    # Persistence API
    # =========================================================================
    api_url: str = Field(
        default="http://localhost:5000/api",
        description="Base URL of the catalog persistence API",
    )
    api_token: str = Field(
        default="",
        description="Bearer token forwarded to the persistence API (optional)",
    )
    api_timeout: float = Field(
        default=30.0,
        description="Persistence API request timeout in seconds",
    )

    # =========================================================================
    # Image hosting & compression
    # =========================================================================
    products_upload_folder: str = Field(
        default="products",
        description="Folder hint for product image uploads",
    )
    categories_upload_folder: str = Field(
        default="categories",
        description="Folder hint for category image uploads",
    )
    compression_quality: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Remote compression quality, tuned for 20-30 KB output",
    )
    fallback_max_dimension: int = Field(
        default=800,
        ge=1,
        description="Bounding box (px) of the local fallback re-encode",
    )
    fallback_quality: int = Field(
        default=50,
        ge=1,
        le=100,
        description="Quality of the local fallback re-encode",
    )
    fallback_min_quality: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Quality floor of the aggressive local re-encode",
    )
    max_base64_bytes: int = Field(
        default=50 * 1024,
        ge=1,
        description="Hard cap on a persisted base64 image payload",
    )
    max_images: int = Field(
        default=10,
        ge=1,
        description="Maximum number of images in a product image list",
    )

    # =========================================================================
    # List cache
    # =========================================================================
    cache_backend: Literal["memory", "file"] = Field(
        default="memory",
        description="Storage backend of the list cache",
    )
    cache_dir: str = Field(
        default="./.catalog_cache",
        description="Directory used when cache_backend=file",
    )
    cache_ttl_seconds: float = Field(
        default=300,
        description="Freshness window of cached lists",
    )

    # =========================================================================
    # Notifications
    # =========================================================================
    notification_display_seconds: float = Field(
        default=3.0,
        description="How long a transient notification stays active",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=True,
        description="Output logs as JSON outside dev",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for convenience
settings = get_settings()
