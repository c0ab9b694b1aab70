"""Shared HTTP plumbing for the persistence API.

Owns the lazily created httpx client and maps HTTP failures onto the
catalog error taxonomy. Responses use the envelope {success, data, message}.
"""

from typing import Any

import httpx

from catalog_admin.config import settings
from catalog_admin.core.errors import (
    CatalogAdminError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from catalog_admin.infra.logging import get_logger

logger = get_logger(__name__)


def error_for_status(status_code: int, message: str) -> CatalogAdminError:
    """Build the typed error for a non-2xx status.

    Args:
        status_code: HTTP status code
        message: Human readable message

    Returns:
        Error instance matching the status
    """
    if status_code in (400, 422):
        return ValidationError(message)
    if status_code == 404:
        return NotFoundError(message)
    if status_code == 409:
        return ConflictError(message)
    if status_code >= 500:
        return TransientError(message)
    return CatalogAdminError(message)


class ApiClient:
    """Base HTTP client for the catalog persistence API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        token: str | None = None,
    ) -> None:
        """Initialize API client.

        Args:
            base_url: API base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            token: Bearer token (defaults to settings, empty disables auth)
        """
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.token = token if token is not None else settings.api_token
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return the decoded JSON envelope.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            **kwargs: Passed to httpx (json, params, data, files)

        Returns:
            Decoded JSON body

        Raises:
            TransientError: Network failure, 5xx, or a non-JSON body
            ValidationError, NotFoundError, ConflictError: For 4xx statuses
        """
        client = await self._get_client()

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "Persistence API unreachable",
                method=method,
                path=path,
                error=str(e),
            )
            raise TransientError(f"Network error calling {path}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            text = response.text[:500]
            logger.error(
                "Persistence API returned non-JSON response",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=text,
            )
            if response.is_success:
                raise TransientError(text or f"Server error: {response.status_code}")
            raise error_for_status(
                response.status_code,
                text or f"Server error: {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                "Persistence API returned malformed JSON",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise TransientError(f"Malformed JSON from {path}") from e

        if not response.is_success:
            message = None
            if isinstance(body, dict):
                message = body.get("message")
            message = message or f"Request failed: {response.status_code}"
            logger.warning(
                "Persistence API returned error",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message,
            )
            raise error_for_status(response.status_code, message)

        if not isinstance(body, dict):
            raise TransientError(f"Unexpected response shape from {path}")

        logger.debug(
            "Persistence API call succeeded",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return body
