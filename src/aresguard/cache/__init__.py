r"""Response cache and its storage backends."""

from __future__ import annotations

__all__ = ["KeyValueStore", "MemoryStore", "ResponseCache", "SQLiteStore", "cache_key"]

from aresguard.cache.manager import ResponseCache, cache_key
from aresguard.cache.storage import KeyValueStore, MemoryStore, SQLiteStore
