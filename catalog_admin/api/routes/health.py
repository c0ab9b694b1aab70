"""Health check endpoints.

Provides health status for probes and monitoring.
"""

from fastapi import APIRouter

from catalog_admin import __version__
from catalog_admin.api.deps import Catalog
from catalog_admin.config import settings
from catalog_admin.core.errors import CatalogAdminError
from catalog_admin.infra.logging import get_logger
from catalog_admin.schemas.common import HealthResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Basic health check.

    Returns 200 if service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
        checks={},
    )


@router.get("/health/ready", response_model=HealthResponse)
async def health_ready(client: Catalog) -> HealthResponse:
    """Readiness check.

    Verifies the persistence API answers a category listing.
    """
    checks: dict[str, bool] = {}

    try:
        await client.list_categories(include_inactive=False)
        checks["persistence_api"] = True
    except CatalogAdminError as e:
        logger.warning("Persistence API health check failed", error=str(e))
        checks["persistence_api"] = False

    all_healthy = all(checks.values()) if checks else True

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=__version__,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
        checks={"alive": True},
    )
