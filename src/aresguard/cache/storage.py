r"""Key-value byte stores backing the response cache.

A store only moves bytes. Serialization, expiry and eviction live in
``ResponseCache``. Every I/O failure is raised as ``CacheError`` so the
cache can absorb it.
"""

from __future__ import annotations

__all__ = ["KeyValueStore", "MemoryStore", "SQLiteStore"]

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from aresguard.exceptions import CacheError

logger: logging.Logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Asynchronous persistent key-value byte store.

    ``keys()`` returns the keys in insertion order, where an update of
    an existing key counts as a new insertion.
    """

    name: str = "store"

    async def open(self) -> None:  # noqa: B027
        """Prepare the store for use. Called once before any other method."""

    async def close(self) -> None:  # noqa: B027
        """Release the resources held by the store."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the value of a key, or ``None`` if the key is absent."""

    @abstractmethod
    async def put(self, key: str, value: bytes) -> None:
        """Insert or replace the value of a key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key does nothing."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return all keys in insertion order."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""

    async def count(self) -> int:
        return len(await self.keys())


class MemoryStore(KeyValueStore):
    """Store kept in a dictionary, lost when the process exits.

    Example:
        ```pycon
        >>> import asyncio
        >>> from aresguard.cache.storage import MemoryStore
        >>> store = MemoryStore()
        >>> asyncio.run(store.put("a", b"1"))
        >>> asyncio.run(store.get("a"))
        b'1'

        ```
    """

    name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def put(self, key: str, value: bytes) -> None:
        self._data.pop(key, None)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._data)

    async def clear(self) -> None:
        self._data.clear()

    async def count(self) -> int:
        return len(self._data)


class SQLiteStore(KeyValueStore):
    """Store persisted in a SQLite database file.

    Blocking ``sqlite3`` calls run in a worker thread. An update deletes
    and re-inserts the row so that ``rowid`` order follows insertion
    order.

    Args:
        path: The database file. Parent directories are created on open.
        table: The table holding the entries.
    """

    name = "sqlite"

    def __init__(self, path: str | Path, table: str = "aresguard_cache") -> None:
        self._path = Path(path)
        self._table = table
        self._connection: sqlite3.Connection | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={str(self._path)!r}, table={self._table!r})"

    @property
    def path(self) -> Path:
        return self._path

    async def open(self) -> None:
        if self._connection is not None:
            return
        await self._run(self._open)

    async def close(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        await asyncio.to_thread(connection.close)

    async def get(self, key: str) -> bytes | None:
        row = await self._run(
            self._fetchone, f"SELECT value FROM {self._table} WHERE key = ?", (key,)  # noqa: S608
        )
        return None if row is None else bytes(row[0])

    async def put(self, key: str, value: bytes) -> None:
        await self._run(self._replace, key, value)

    async def delete(self, key: str) -> None:
        await self._run(self._execute, f"DELETE FROM {self._table} WHERE key = ?", (key,))  # noqa: S608

    async def keys(self) -> list[str]:
        rows = await self._run(
            self._fetchall, f"SELECT key FROM {self._table} ORDER BY rowid"  # noqa: S608
        )
        return [row[0] for row in rows]

    async def clear(self) -> None:
        await self._run(self._execute, f"DELETE FROM {self._table}", ())  # noqa: S608

    async def count(self) -> int:
        row = await self._run(self._fetchone, f"SELECT COUNT(*) FROM {self._table}", ())  # noqa: S608
        return int(row[0])

    async def _run(self, func, *args):  # noqa: ANN001, ANN202
        try:
            return await asyncio.to_thread(func, *args)
        except (sqlite3.Error, OSError) as exc:
            msg = f"SQLite cache operation failed on {self._path}: {exc}"
            raise CacheError(msg) from exc

    def _open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(self._path, check_same_thread=False)
        connection.execute(
            f"CREATE TABLE IF NOT EXISTS {self._table} (key TEXT PRIMARY KEY, value BLOB NOT NULL)"
        )
        connection.commit()
        self._connection = connection
        logger.debug(f"SQLite cache store opened at {self._path}")

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            msg = "SQLiteStore must be opened before use"
            raise CacheError(msg)
        return self._connection

    def _execute(self, sql: str, params: tuple) -> None:
        connection = self._require_connection()
        connection.execute(sql, params)
        connection.commit()

    def _replace(self, key: str, value: bytes) -> None:
        connection = self._require_connection()
        with connection:
            connection.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))  # noqa: S608
            connection.execute(
                f"INSERT INTO {self._table} (key, value) VALUES (?, ?)",  # noqa: S608
                (key, sqlite3.Binary(value)),
            )

    def _fetchone(self, sql: str, params: tuple) -> tuple | None:
        return self._require_connection().execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        return self._require_connection().execute(sql, params).fetchall()
