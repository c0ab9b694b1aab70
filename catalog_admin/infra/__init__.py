"""Infrastructure - Logging and list cache."""

from catalog_admin.infra.cache import CacheKey, CacheService, FileStore, MemoryStore, get_cache_service
from catalog_admin.infra.logging import get_logger, operation_context, setup_logging

__all__ = [
    "CacheKey",
    "CacheService",
    "FileStore",
    "MemoryStore",
    "get_cache_service",
    "setup_logging",
    "get_logger",
    "operation_context",
]
