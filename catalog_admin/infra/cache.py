"""List cache with a freshness window and pluggable storage.

Memoizes product/shop/vendor listings across calls. Each entry is stored as
JSON `{<entity>: [...], "timestamp": <epoch-ms>}` under a fixed key. Writes
are last-writer-wins; a missing, stale or unreadable entry is a miss.
"""

import json
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from catalog_admin.config import settings
from catalog_admin.infra.logging import get_logger

logger = get_logger(__name__)


class CacheKey(str, Enum):
    """Storage keys of the cached listings."""

    PRODUCTS = "products_cache_all"
    SHOPS = "shops_cache_all"
    VENDORS = "vendors_cache_all"

    @property
    def entity(self) -> str:
        """Field name holding the items inside the entry."""
        return self.value.split("_", 1)[0]


class KeyValueStore(Protocol):
    """String key/value storage backend."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """Process-local storage backend."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore:
    """Storage backend keeping one JSON file per key in a directory."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class CacheService:
    """Freshness-bounded cache of listings on top of a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Storage backend
            ttl_seconds: Freshness window (defaults to settings, 5 minutes)
            clock: Returns the current time in seconds
        """
        self._store = store
        self._ttl_ms = int((ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds) * 1000)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def load(self, key: CacheKey) -> list[dict[str, Any]] | None:
        """Return cached items if present and fresh.

        Args:
            key: Cache key

        Returns:
            Cached items, or None on a miss
        """
        try:
            raw = self._store.get_item(key.value)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cache read failed", key=key.value, error=str(e))
            return None

        if raw is None:
            logger.debug("Cache miss", key=key.value)
            return None

        try:
            entry = json.loads(raw)
            items = entry[key.entity]
            timestamp = int(entry["timestamp"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry", key=key.value, error=str(e))
            return None

        age_ms = self._now_ms() - timestamp
        if age_ms >= self._ttl_ms:
            logger.debug("Cache entry stale", key=key.value, age_ms=age_ms)
            return None

        if not isinstance(items, list) or not items:
            return None

        logger.debug("Cache hit", key=key.value, count=len(items), age_ms=age_ms)
        return items

    def save(self, key: CacheKey, items: list[dict[str, Any]]) -> None:
        """Store items under key with the current timestamp.

        Storage failures drop the entry instead of propagating.
        """
        value = json.dumps({key.entity: items, "timestamp": self._now_ms()})
        try:
            self._store.set_item(key.value, value)
        except OSError as e:
            logger.warning(
                "Cache write failed, clearing entry",
                key=key.value,
                error=str(e),
            )
            try:
                self._store.remove_item(key.value)
            except OSError as clear_error:
                logger.warning(
                    "Cache entry could not be cleared",
                    key=key.value,
                    error=str(clear_error),
                )
            return
        logger.debug("Cache entry saved", key=key.value, count=len(items))

    def invalidate(self, key: CacheKey) -> None:
        """Drop an entry."""
        self._store.remove_item(key.value)


def build_store() -> KeyValueStore:
    """Create the storage backend selected in settings."""
    if settings.cache_backend == "file":
        return FileStore(settings.cache_dir)
    return MemoryStore()


# Singleton instance
_cache_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """Get the singleton cache service."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService(build_store())
        logger.info("Cache service initialized", backend=settings.cache_backend)
    return _cache_service
