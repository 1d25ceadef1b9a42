"""Content-hash keyed cache of classification results."""

import threading
from typing import Optional

import structlog
from pydantic import BaseModel

from obra_photo.adapters.cache_store import BaseCacheStore
from obra_photo.models.result import CacheEntry, ClassificationResult

logger = structlog.get_logger(__name__)


class CacheStats(BaseModel):
    """Size summary of the in-memory cache."""

    count: int
    approx_size_bytes: int
    approx_size: str


def format_size(size_bytes: float) -> str:
    """Format a byte count as ``KB`` below one megabyte, ``MB`` above."""
    size_kb = size_bytes / 1024
    if size_kb > 1024:
        return f"{size_kb / 1024:.1f} MB"
    return f"{size_kb:.1f} KB"


class ResultCache:
    """
    Read-through cache in front of an optional persistence store.

    Only successful results are ever stored. The in-memory map is guarded
    by a lock so that stats can be read from another thread while a run
    is writing.
    """

    def __init__(self, store: Optional[BaseCacheStore] = None) -> None:
        self.store = store
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[ClassificationResult]:
        """
        Look up a result by content hash.

        Args:
            key: Content hash.

        Returns:
            The cached result, or None on a miss.
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None:
            return entry.result

        if self.store is None:
            return None

        entry = await self.store.get(key)
        if entry is None:
            return None

        with self._lock:
            self._entries[key] = entry
        logger.debug("cache_loaded_from_store", hash=key)
        return entry.result

    async def put(self, key: str, result: ClassificationResult) -> bool:
        """
        Store a successful result.

        Args:
            key: Content hash.
            result: Result to cache.

        Returns:
            True when the result was stored, False when it was refused.
            A failing persistence store is logged, not raised.
        """
        if not result.is_success:
            logger.debug("cache_put_refused", hash=key, status=result.status)
            return False

        entry = CacheEntry(hash=key, result=result)
        with self._lock:
            self._entries[key] = entry
        if self.store is not None:
            try:
                await self.store.put(key, entry)
            except Exception as e:
                # The in-memory entry still serves this process
                logger.error(
                    "cache_store_write_failed",
                    hash=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return True

    async def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
        if self.store is not None:
            await self.store.delete(key)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        if self.store is not None:
            await self.store.clear()
        logger.info("cache_cleared")

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        """Count and approximate serialized size of the in-memory entries."""
        with self._lock:
            entries = list(self._entries.values())
        size = sum(len(entry.model_dump_json()) for entry in entries)
        return CacheStats(
            count=len(entries),
            approx_size_bytes=size,
            approx_size=format_size(size),
        )
