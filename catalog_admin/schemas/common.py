"""Common schemas for API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = Field(default=False)
    error: str = Field(description="Error message")
    error_type: str = Field(description="Error type/class name")
    retryable: bool = Field(default=False, description="Whether retrying may succeed")
    detail: dict[str, Any] | None = Field(default=None, description="Additional error details")

    model_config = {"extra": "forbid"}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Health status (healthy, degraded)")
    version: str = Field(description="Service version")
    environment: str = Field(description="Environment name")
    checks: dict[str, bool] = Field(default_factory=dict, description="Individual health checks")

    model_config = {"extra": "forbid"}


class NotificationItem(BaseModel):
    """Transient user-facing notification."""

    level: str
    message: str
    createdAt: float
    retry: str | None = None
