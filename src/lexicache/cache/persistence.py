"""
Persistence backends for the translation store.

Purpose
-------
Mirror the whole entry set as one serialized blob under the configured
`storage_key`, so a restarted process can warm itself from the last flush.

Responsibilities
----------------
- Define the async `StorageBackend` protocol (get / set / delete by key)
- Provide in-memory, JSON-file and Redis implementations
- Translate backend-specific failures into `CacheStorageError`

Non-Responsibilities
--------------------
- Serialization of items (see item.py)
- Deciding when to flush (the store coalesces writes)
- Swallowing errors (the store logs and degrades; backends always raise)

Design Notes
------------
- File I/O runs in a worker thread via `asyncio.to_thread`
- Files are written to a temp file and atomically renamed into place
- Redis access uses `redis.asyncio`; the client is owned by the backend
  only when it was created from a URL
"""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Dict, Optional, Protocol, Union, runtime_checkable

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from lexicache.core.config.settings import DEFAULT_REDIS_URL
from lexicache.core.exceptions import CacheStorageError
from lexicache.core.logging.logger import get_logger

logger = get_logger(__name__)

_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]")


@runtime_checkable
class StorageBackend(Protocol):
    async def get(self, storage_key: str) -> Optional[str]: ...

    async def set(self, storage_key: str, blob: str) -> None: ...

    async def delete(self, storage_key: str) -> None: ...


# ============================================================================
# In-memory
# ============================================================================


class MemoryStorage:
    """Process-local backend. Useful in tests and as a no-I/O default."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get(self, storage_key: str) -> Optional[str]:
        return self._data.get(storage_key)

    async def set(self, storage_key: str, blob: str) -> None:
        self._data[storage_key] = blob

    async def delete(self, storage_key: str) -> None:
        self._data.pop(storage_key, None)

    def __contains__(self, storage_key: object) -> bool:
        return storage_key in self._data


# ============================================================================
# JSON file
# ============================================================================


class JsonFileStorage:
    """
    One JSON file per storage key inside `directory`.

    Storage keys are sanitized into filenames (`i18n_cache` ->
    `i18n_cache.json`).
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def path_for(self, storage_key: str) -> Path:
        return self.directory / f"{_FILENAME_RE.sub('_', storage_key)}.json"

    def _read(self, path: Path) -> Optional[str]:
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, path: Path, blob: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".lexicache-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)

    async def get(self, storage_key: str) -> Optional[str]:
        path = self.path_for(storage_key)
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as e:
            raise CacheStorageError(
                "Failed to read cache file",
                details={"path": str(path), "error": str(e)},
            ) from e

    async def set(self, storage_key: str, blob: str) -> None:
        path = self.path_for(storage_key)
        try:
            await asyncio.to_thread(self._write, path, blob)
        except OSError as e:
            raise CacheStorageError(
                "Failed to write cache file",
                details={"path": str(path), "error": str(e)},
            ) from e

    async def delete(self, storage_key: str) -> None:
        path = self.path_for(storage_key)
        try:
            await asyncio.to_thread(self._remove, path)
        except OSError as e:
            raise CacheStorageError(
                "Failed to delete cache file",
                details={"path": str(path), "error": str(e)},
            ) from e


# ============================================================================
# Redis
# ============================================================================


class RedisStorage:
    """
    Redis-backed blob storage.

    Parameters
    ----------
    client:
        An existing `redis.asyncio` client. It is never closed by this
        backend.
    key_prefix:
        Prepended to every storage key.
    ttl_seconds:
        Optional expiry applied on every write.
    """

    def __init__(
        self,
        client: AsyncRedis,
        key_prefix: str = "lexicache:",
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self._owns_client = False
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(
        cls,
        url: str = DEFAULT_REDIS_URL,
        key_prefix: str = "lexicache:",
        ttl_seconds: Optional[int] = None,
        socket_timeout: int = 5,
    ) -> "RedisStorage":
        client: AsyncRedis = AsyncRedis.from_url(
            url,
            socket_timeout=socket_timeout,
            encoding="utf-8",
            decode_responses=True,
        )
        storage = cls(client, key_prefix=key_prefix, ttl_seconds=ttl_seconds)
        storage._owns_client = True
        logger.info(
            "RedisStorage created from URL",
            extra={"url_scheme": url.split("://")[0] if "://" in url else "unknown"},
        )
        return storage

    def _key(self, storage_key: str) -> str:
        return f"{self.key_prefix}{storage_key}"

    async def get(self, storage_key: str) -> Optional[str]:
        start_time = time.monotonic()
        try:
            result = await self._client.get(self._key(storage_key))
        except RedisError as e:
            raise CacheStorageError(
                "Redis GET failed",
                details={"key": self._key(storage_key), "error": str(e)},
            ) from e

        logger.debug(
            "Redis GET operation",
            extra={
                "key": self._key(storage_key),
                "found": result is not None,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        if isinstance(result, bytes):
            return result.decode("utf-8")
        return result

    async def set(self, storage_key: str, blob: str) -> None:
        try:
            if self.ttl_seconds:
                await self._client.set(self._key(storage_key), blob, ex=self.ttl_seconds)
            else:
                await self._client.set(self._key(storage_key), blob)
        except RedisError as e:
            raise CacheStorageError(
                "Redis SET failed",
                details={"key": self._key(storage_key), "error": str(e)},
            ) from e

    async def delete(self, storage_key: str) -> None:
        try:
            await self._client.delete(self._key(storage_key))
        except RedisError as e:
            raise CacheStorageError(
                "Redis DEL failed",
                details={"key": self._key(storage_key), "error": str(e)},
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["StorageBackend", "MemoryStorage", "JsonFileStorage", "RedisStorage"]
