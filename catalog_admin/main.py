"""FastAPI application entry point.

Catalog admin gateway: category/subcategory management and the product
image pipeline on top of the catalog persistence API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_admin import __version__
from catalog_admin.config import settings
from catalog_admin.core.category_manager import get_category_manager
from catalog_admin.core.errors import (
    CatalogAdminError,
    CompressionError,
    ConflictError,
    ImageProcessingError,
    ImageTooLargeError,
    NotFoundError,
    PartialBatchError,
    PreconditionError,
    TransientError,
    ValidationError,
)
from catalog_admin.infra.logging import get_logger, setup_logging
from catalog_admin.schemas.common import ErrorResponse
from catalog_admin.services.catalog_client import get_catalog_client
from catalog_admin.services.image_host_client import get_image_host_client

# Import routers
from catalog_admin.api.routes.categories import router as categories_router
from catalog_admin.api.routes.free_subcategories import router as free_subcategories_router
from catalog_admin.api.routes.health import router as health_router
from catalog_admin.api.routes.images import router as images_router
from catalog_admin.api.routes.lists import router as lists_router
from catalog_admin.api.routes.notifications import router as notifications_router

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Shutdown:
    - Close the category manager (late results are discarded)
    - Close the HTTP clients
    """
    logger.info(
        "Catalog admin starting",
        environment=settings.environment,
        api_url=settings.api_url,
    )

    yield

    # Shutdown
    logger.info("Catalog admin shutting down")

    await get_category_manager().close()
    await get_catalog_client().close()
    await get_image_host_client().close()
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="Catalog Admin",
    description="Category management and product image pipeline for the catalog admin panel",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "dev" else None,
    redoc_url=None,
)

# CORS middleware (mainly for local development)
if settings.environment == "dev":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# =============================================================================
# Exception Handlers
# =============================================================================


def status_for(exc: CatalogAdminError) -> int:
    """HTTP status of a catalog admin error."""
    if isinstance(exc, ImageTooLargeError):
        return 413
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, PreconditionError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, PartialBatchError):
        return 207
    if isinstance(exc, (TransientError, CompressionError)):
        return 503
    if isinstance(exc, ImageProcessingError):
        return 503 if exc.retryable else 422
    return 400


@app.exception_handler(CatalogAdminError)
async def catalog_admin_exception_handler(request: Request, exc: CatalogAdminError) -> JSONResponse:
    """Translate domain errors into structured responses."""
    status_code = status_for(exc)

    detail = None
    if isinstance(exc, PartialBatchError):
        detail = {"succeeded": exc.succeeded, "failed": exc.failed}
    elif isinstance(exc, ConflictError) and exc.identifier:
        detail = {"identifier": exc.identifier}

    logger.warning(
        "Request failed",
        error=exc.message,
        error_type=type(exc).__name__,
        status_code=status_code,
        path=request.url.path,
    )

    body = ErrorResponse(
        error=exc.message,
        error_type=type(exc).__name__,
        retryable=exc.retryable,
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "error_type": type(exc).__name__,
        },
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router, tags=["Health"])
app.include_router(categories_router, prefix="/categories", tags=["Categories"])
app.include_router(free_subcategories_router, prefix="/free-subcategories", tags=["Free Subcategories"])
app.include_router(images_router, prefix="/images", tags=["Images"])
app.include_router(lists_router, prefix="/lists", tags=["Lists"])
app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])


# =============================================================================
# Root Endpoint
# =============================================================================


@app.get("/")
async def root() -> dict:
    """Root endpoint - basic service info."""
    return {
        "service": "Catalog Admin",
        "version": __version__,
        "environment": settings.environment,
    }
