"""Persistence backends for cached classification results."""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError

from obra_photo.config import Settings
from obra_photo.models.result import CacheEntry

logger = structlog.get_logger(__name__)


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Retrieve a cache entry by content hash."""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a cache entry."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries."""


class InMemoryCacheStore(BaseCacheStore):
    """Process-local store, mostly useful in tests."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    async def list_entries(self) -> list[CacheEntry]:
        return list(self._entries.values())


class JsonFileCacheStore(BaseCacheStore):
    """File-based store keeping one JSON document per content hash."""

    def __init__(self, cache_root: Path) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Retrieve a cache entry, ignoring unreadable files."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return CacheEntry.model_validate_json(text)
        except (OSError, ValidationError) as e:
            logger.warning("cache_entry_unreadable", key=key, error=str(e))
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        path = self._entry_path(key)
        await asyncio.to_thread(
            path.write_text, entry.model_dump_json(indent=2), encoding="utf-8"
        )

    async def delete(self, key: str) -> None:
        path = self._entry_path(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def clear(self) -> None:
        for path in self._root.glob("*.json"):
            await asyncio.to_thread(path.unlink, missing_ok=True)

    async def list_entries(self) -> list[CacheEntry]:
        entries: list[CacheEntry] = []
        for path in sorted(self._root.glob("*.json")):
            try:
                data = json.loads(await asyncio.to_thread(path.read_text, encoding="utf-8"))
                entries.append(CacheEntry(**data))
            except (OSError, ValueError, ValidationError):
                continue
        return entries

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"


def create_cache_store(settings: Optional[Settings] = None) -> BaseCacheStore:
    """
    Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseCacheStore implementation.

    Raises:
        ValueError: If the backend name is not supported.
    """
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        return InMemoryCacheStore()

    if backend == "json":
        logger.info("json_cache_store_selected", cache_path=settings.cache_path)
        return JsonFileCacheStore(cache_root=Path(settings.cache_path))

    raise ValueError(f"Unsupported cache backend: {backend!r}")
