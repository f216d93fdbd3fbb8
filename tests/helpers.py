r"""Shared test helpers.

This module contains the fakes and builders used across the unit tests:
an interface source driven by the test, a connectivity monitor whose
reachability probes never leave the process, and an ``AsyncGuardClient``
wired to an ``httpx.MockTransport``.
"""

from __future__ import annotations

__all__ = [
    "BASE_URL",
    "PROBE_URL",
    "FakeInterfaceSource",
    "FailingStore",
    "guard_client",
    "make_monitor",
    "probe_client",
    "wait_until",
]

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx

from aresguard import AsyncGuardClient, ClientConfig, MemoryStore
from aresguard.backoff import ConstantBackoff
from aresguard.exceptions import CacheError
from aresguard.network.interfaces import InterfaceSource
from aresguard.network.monitor import ConnectivityMonitor
from aresguard.network.status import ConnectionType

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

BASE_URL = "https://api.example.com"
PROBE_URL = "https://probe.example.com/"


class FakeInterfaceSource(InterfaceSource):
    r"""Interface source whose state is set by the test.

    ``current`` is returned by ``connections()``. ``push()`` also feeds
    the ``watch()`` iterator. Setting ``error`` makes ``connections()``
    raise it.
    """

    def __init__(self, connections: Sequence[ConnectionType] = (ConnectionType.WIFI,)) -> None:
        self.current = list(connections)
        self.error: Exception | None = None
        self.calls = 0
        self._changes: asyncio.Queue = asyncio.Queue()

    async def connections(self) -> list[ConnectionType]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.current)

    async def watch(self) -> AsyncIterator[list[ConnectionType]]:
        while True:
            yield await self._changes.get()

    def push(self, connections: Sequence[ConnectionType]) -> None:
        self.current = list(connections)
        self._changes.put_nowait(list(connections))


def probe_client(status_code: int = 200, fail: bool = False) -> httpx.AsyncClient:
    r"""Return a client answering every probe with ``status_code``, or
    failing with ``httpx.ConnectError`` if ``fail`` is set."""

    def handler(request: httpx.Request) -> httpx.Response:
        if fail:
            msg = "probe unreachable"
            raise httpx.ConnectError(msg, request=request)
        return httpx.Response(status_code, request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_monitor(
    source: InterfaceSource | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    probe_endpoints: Sequence[str] = (PROBE_URL,),
) -> ConnectivityMonitor:
    """Return a monitor over a fake source with in-process probes."""
    return ConnectivityMonitor(
        source if source is not None else FakeInterfaceSource(),
        probe_endpoints=probe_endpoints,
        probe_timeout=1.0,
        poll_interval=0.01,
        client=client if client is not None else probe_client(),
    )


@asynccontextmanager
async def guard_client(
    handler: Callable[[httpx.Request], Any],
    *,
    source: FakeInterfaceSource | None = None,
    config: ClientConfig | None = None,
    **kwargs: Any,
) -> AsyncIterator[AsyncGuardClient]:
    r"""Yield an entered ``AsyncGuardClient`` sending through ``handler``.

    The client uses an in-memory cache and a monitor over ``source``.
    Network handling is enabled and network retries do not sleep unless
    ``config`` says otherwise.
    """
    monitor = make_monitor(source)
    if config is None:
        config = ClientConfig(handle_network=True, network_backoff=ConstantBackoff(0))
    client = AsyncGuardClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        monitor=monitor,
        cache_store=MemoryStore(),
        config=config,
        **kwargs,
    )
    try:
        async with client:
            yield client
    finally:
        await monitor.dispose()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Wait until ``predicate()`` is true, failing after ``timeout``
    seconds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


class FailingStore(MemoryStore):
    r"""Memory store whose operations raise ``CacheError`` once
    ``broken`` is set."""

    def __init__(self, broken: bool = True, fail_open: bool = False) -> None:
        super().__init__()
        self.broken = broken
        self.fail_open = fail_open

    async def open(self) -> None:
        if self.fail_open:
            msg = "disk unavailable"
            raise CacheError(msg)

    async def get(self, key: str) -> bytes | None:
        self._check()
        return await super().get(key)

    async def put(self, key: str, value: bytes) -> None:
        self._check()
        await super().put(key, value)

    async def delete(self, key: str) -> None:
        self._check()
        await super().delete(key)

    async def clear(self) -> None:
        self._check()
        await super().clear()

    async def count(self) -> int:
        self._check()
        return await super().count()

    def _check(self) -> None:
        if self.broken:
            msg = "disk I/O error"
            raise CacheError(msg)
