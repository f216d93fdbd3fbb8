r"""Time-boxed and size-bounded response cache.

Entries are stored as UTF-8 JSON envelopes ``{"data": payload,
"timestamp": ms}`` in a ``KeyValueStore``. Expiry is evaluated lazily on
read, and an initialization sweep removes entries that expired while the
cache was not in use. Above ``max_entries`` the entries with the oldest
``timestamp`` are evicted; reads never touch the timestamp, so eviction
follows insertion time and not access time.

Storage failures never reach the caller: they are logged and degrade to
a cache miss or a no-op.
"""

from __future__ import annotations

__all__ = ["ResponseCache", "cache_key"]

import asyncio
import json
import logging
import time
from typing import Any

from aresguard.cache.storage import KeyValueStore, MemoryStore
from aresguard.core.config import DEFAULT_CACHE_DURATION, DEFAULT_MAX_CACHE_SIZE
from aresguard.core.validation import validate_cache_params
from aresguard.exceptions import CacheError

logger: logging.Logger = logging.getLogger(__name__)


def cache_key(path: str, query: dict[str, Any] | None = None) -> str:
    r"""Return the storage key of a path and its query parameters.

    Query parameters are serialized with sorted keys so that two dicts
    with the same items map to the same entry.

    Args:
        path: The request path or URL.
        query: The optional query parameters.

    Returns:
        The storage key.

    Example:
        ```pycon
        >>> from aresguard.cache.manager import cache_key
        >>> cache_key("/posts")
        '/posts_'
        >>> cache_key("/posts", {"page": 2, "limit": 10})
        '/posts_{"limit": 10, "page": 2}'

        ```
    """
    suffix = json.dumps(query, sort_keys=True, default=str) if query else ""
    return f"{path}_{suffix}"


class ResponseCache:
    r"""Read-through cache of GET payloads.

    Args:
        store: The key-value store holding the entries. Defaults to a
            new ``MemoryStore`` owned by this cache. Pass a ``SQLiteStore``
            to keep the entries across restarts.
        cache_duration: Time to live of an entry in seconds. Must be > 0.
        max_entries: Maximum number of entries. Must be > 0.

    Raises:
        ValueError: If ``cache_duration`` or ``max_entries`` is invalid.

    Example:
        ```pycon
        >>> import asyncio
        >>> from aresguard.cache import MemoryStore, ResponseCache
        >>> cache = ResponseCache(MemoryStore(), cache_duration=60, max_entries=2)
        >>> asyncio.run(cache.put("/posts", None, {"id": 1}))
        >>> asyncio.run(cache.get("/posts"))
        {'id': 1}

        ```
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        cache_duration: float = DEFAULT_CACHE_DURATION,
        max_entries: int = DEFAULT_MAX_CACHE_SIZE,
    ) -> None:
        validate_cache_params(cache_duration=cache_duration, max_cache_size=max_entries)
        self._store = store if store is not None else MemoryStore()
        self._cache_duration = cache_duration
        self._max_entries = max_entries
        self._initialized = False
        self._init_task: asyncio.Task | None = None
        self._last_error: str | None = None
        self._hits = 0
        self._misses = 0

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(store={self._store.name!r}, "
            f"cache_duration={self._cache_duration}, max_entries={self._max_entries})"
        )

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def cache_duration(self) -> float:
        return self._cache_duration

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """Open the store and remove expired or corrupted entries.

        Concurrent calls share a single attempt. Calling this method again
        after a success does nothing. A failed initialization is retried
        on the next call and on the next cache operation.

        Returns:
            ``True`` if the cache is ready to use, otherwise ``False``.
        """
        if self._initialized:
            return True
        if self._init_task is None:
            self._init_task = asyncio.create_task(self._initialize())
        task = self._init_task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._init_task is task:
                self._init_task = None

    async def _initialize(self) -> bool:
        try:
            await self._store.open()
            removed = await self._sweep()
        except CacheError as exc:
            self._last_error = str(exc)
            logger.warning(f"Response cache initialization failed: {exc}")
            return False
        self._initialized = True
        self._last_error = None
        logger.debug(f"Response cache initialized ({self._store.name}), {removed} stale entries removed")
        return True

    async def get(self, path: str, query: dict[str, Any] | None = None) -> Any:
        """Return the payload stored for a path and query.

        An expired or corrupted entry is deleted.

        Args:
            path: The request path or URL.
            query: The optional query parameters.

        Returns:
            The payload, or ``None`` on a miss.
        """
        if not await self.initialize():
            self._misses += 1
            return None
        key = cache_key(path, query)
        try:
            raw = await self._store.get(key)
            if raw is None:
                self._misses += 1
                return None
            entry = self._decode(raw)
            if entry is None:
                logger.debug(f"Removing corrupted cache entry {key!r}")
                await self._store.delete(key)
                self._misses += 1
                return None
            if self._is_expired(entry["timestamp"]):
                logger.debug(f"Cache entry {key!r} expired")
                await self._store.delete(key)
                self._misses += 1
                return None
        except CacheError as exc:
            self._last_error = str(exc)
            logger.warning(f"Failed to read cache entry {key!r}: {exc}")
            self._misses += 1
            return None
        self._hits += 1
        return entry["data"]

    async def put(self, path: str, query: dict[str, Any] | None, payload: Any) -> None:
        """Store a payload for a path and query.

        The payload must be JSON serializable. A ``None`` payload is not
        stored. After the insertion the oldest entries are evicted until
        at most ``max_entries`` remain.

        Args:
            path: The request path or URL.
            query: The optional query parameters.
            payload: The payload to store.
        """
        if payload is None:
            return
        if not await self.initialize():
            return
        key = cache_key(path, query)
        try:
            raw = json.dumps({"data": payload, "timestamp": self._now_ms()}).encode("utf-8")
        except (TypeError, ValueError) as exc:
            logger.warning(f"Payload of {key!r} is not JSON serializable, not cached: {exc}")
            return
        try:
            await self._store.put(key, raw)
            await self._enforce_max_entries()
        except CacheError as exc:
            self._last_error = str(exc)
            logger.warning(f"Failed to write cache entry {key!r}: {exc}")

    async def remove(self, path: str, query: dict[str, Any] | None = None) -> None:
        if not await self.initialize():
            return
        try:
            await self._store.delete(cache_key(path, query))
        except CacheError as exc:
            self._last_error = str(exc)
            logger.warning(f"Failed to remove cache entry: {exc}")

    async def clear(self) -> None:
        """Remove every entry."""
        if not await self.initialize():
            return
        try:
            await self._store.clear()
        except CacheError as exc:
            self._last_error = str(exc)
            logger.warning(f"Failed to clear the response cache: {exc}")

    async def clear_all(self) -> None:
        """Remove every entry and reset the hit and miss counters."""
        await self.clear()
        self._hits = 0
        self._misses = 0

    async def get_stats(self) -> dict[str, Any]:
        """Return the state of the cache.

        Returns:
            A dict with ``initialized``, ``entry_count``, ``max_entries``,
            ``cache_duration``, ``storage``, ``hits``, ``misses`` and
            ``error`` (the last storage error, or ``None``).
        """
        entry_count = 0
        if self._initialized:
            try:
                entry_count = await self._store.count()
            except CacheError as exc:
                self._last_error = str(exc)
        return {
            "initialized": self._initialized,
            "entry_count": entry_count,
            "max_entries": self._max_entries,
            "cache_duration": self._cache_duration,
            "storage": self._store.name,
            "hits": self._hits,
            "misses": self._misses,
            "error": self._last_error,
        }

    async def close(self) -> None:
        if self._init_task is not None:
            await asyncio.wait({self._init_task})
        try:
            await self._store.close()
        except CacheError as exc:
            logger.warning(f"Failed to close the cache store: {exc}")
        self._initialized = False

    def _is_expired(self, timestamp: int) -> bool:
        return self._now_ms() - timestamp > self._cache_duration * 1000

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def _decode(raw: bytes) -> dict[str, Any] | None:
        try:
            entry = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return None
        if (
            not isinstance(entry, dict)
            or "data" not in entry
            or not isinstance(entry.get("timestamp"), int)
        ):
            return None
        return entry

    async def _sweep(self) -> int:
        removed = 0
        for key in await self._store.keys():
            raw = await self._store.get(key)
            entry = None if raw is None else self._decode(raw)
            if entry is None or self._is_expired(entry["timestamp"]):
                await self._store.delete(key)
                removed += 1
        return removed

    async def _enforce_max_entries(self) -> None:
        count = await self._store.count()
        if count <= self._max_entries:
            return
        entries: list[tuple[int, str]] = []
        for key in await self._store.keys():
            raw = await self._store.get(key)
            entry = None if raw is None else self._decode(raw)
            if entry is None:
                await self._store.delete(key)
                count -= 1
                continue
            entries.append((entry["timestamp"], key))
        # sort is stable: equal timestamps keep insertion order
        entries.sort(key=lambda item: item[0])
        for _, key in entries[: max(count - self._max_entries, 0)]:
            await self._store.delete(key)
            logger.debug(f"Evicted cache entry {key!r}")
