r"""Connectivity monitor.

The monitor combines two signals. The OS interface state tells whether
any interface that can reach the internet is up. When one is, an
outbound HTTP probe confirms that the internet is actually reachable,
which avoids reporting ``ONLINE`` behind a captive portal or a broken
WAN link.
"""

from __future__ import annotations

__all__ = ["ConnectivityMonitor"]

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import httpx

from aresguard.core.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PROBE_ENDPOINTS,
    DEFAULT_PROBE_TIMEOUT,
)
from aresguard.exceptions import ConnectivityCheckError
from aresguard.network.interfaces import InterfaceSource, PsutilInterfaceSource
from aresguard.network.status import ConnectionType, ConnectivityState, NetworkStatus
from aresguard.network.stream import StatusStream

if TYPE_CHECKING:
    from collections.abc import Sequence

logger: logging.Logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    r"""Tracks whether the internet is reachable.

    A monitor is meant to be created once by the application and shared
    by every client that needs it. ``initialize()`` runs the first check
    and starts watching the interfaces; ``dispose()`` stops it.

    Args:
        source: The interface source. Defaults to a
            ``PsutilInterfaceSource`` polling every ``poll_interval``.
        probe_endpoints: URLs probed in order until one answers with a
            2xx status.
        probe_timeout: Timeout of a single probe in seconds.
        poll_interval: Polling interval of the default source, and delay
            before watching again after a watch error.
        client: The client sending the probes. A client is created and
            owned by the monitor if omitted.

    Example:
        ```pycon
        >>> from aresguard.network import ConnectivityMonitor, NetworkStatus
        >>> monitor = ConnectivityMonitor()
        >>> monitor.status
        <NetworkStatus.UNKNOWN: 'unknown'>

        ```
    """

    def __init__(
        self,
        source: InterfaceSource | None = None,
        *,
        probe_endpoints: Sequence[str] = DEFAULT_PROBE_ENDPOINTS,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if probe_timeout <= 0:
            msg = f"probe_timeout must be > 0, got {probe_timeout}"
            raise ValueError(msg)
        if poll_interval <= 0:
            msg = f"poll_interval must be > 0, got {poll_interval}"
            raise ValueError(msg)
        self._source = source if source is not None else PsutilInterfaceSource(poll_interval)
        self._probe_endpoints = tuple(probe_endpoints)
        self._probe_timeout = probe_timeout
        self._poll_interval = poll_interval
        self._client = client
        self._owns_client = client is None
        self._state = ConnectivityState()
        self._connections: list[ConnectionType] = []
        self._stream: StatusStream[NetworkStatus] = StatusStream()
        self._init_task: asyncio.Task | None = None
        self._watch_task: asyncio.Task | None = None
        self._disposed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status.value}, initialized={self.is_initialized})"

    @property
    def status(self) -> NetworkStatus:
        return self._state.status

    @property
    def state(self) -> ConnectivityState:
        """A copy of the current state."""
        return ConnectivityState(
            status=self._state.status,
            initialized=self._state.initialized,
            last_error=self._state.last_error,
        )

    @property
    def is_online(self) -> bool:
        return self._state.status is NetworkStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status is NetworkStatus.OFFLINE

    @property
    def is_initialized(self) -> bool:
        return self._state.initialized

    @property
    def status_stream(self) -> StatusStream[NetworkStatus]:
        """Stream emitting the new status on every status change."""
        return self._stream

    async def initialize(self) -> bool:
        """Run the first check and start watching the interfaces.

        Concurrent calls share a single check. A failed initialization is
        retried by the next call. After a success, calling this method
        again does nothing.

        Returns:
            Whether the monitor is initialized. ``False`` if the monitor
            was disposed before the check completed.
        """
        if self._state.initialized:
            return True
        if self._disposed:
            return False
        if self._init_task is None:
            self._init_task = asyncio.create_task(self._initialize())
        task = self._init_task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # dispose() cancelled the shared check, not the caller
            if task.cancelled() and self._disposed:
                return False
            raise
        finally:
            if task.done() and self._init_task is task:
                self._init_task = None

    async def _initialize(self) -> bool:
        try:
            await self._check()
        except ConnectivityCheckError as exc:
            self._record_error(exc)
            return False
        if self._disposed:
            return False
        self._state.initialized = True
        self._state.last_error = None
        if self._watch_task is None:
            self._watch_task = asyncio.create_task(self._watch())
        logger.debug(f"Connectivity monitor initialized, status is {self.status.value}")
        return True

    async def refresh(self) -> NetworkStatus:
        """Check the connectivity now, outside of the interface watch.

        Returns:
            The resulting status. A failure to read the interfaces gives
            ``UNKNOWN``.
        """
        try:
            await self._check()
        except ConnectivityCheckError as exc:
            self._record_error(exc)
        return self.status

    async def wait_for_online(self, timeout: float | None = None) -> bool:
        """Wait until the status becomes ``ONLINE``.

        Args:
            timeout: Maximum number of seconds to wait, or ``None`` to
                wait forever.

        Returns:
            ``True`` if online, ``False`` if the timeout elapsed first.
        """
        if self.is_online:
            return True
        online = asyncio.Event()

        def _on_status(status: NetworkStatus) -> None:
            if status is NetworkStatus.ONLINE:
                online.set()

        subscription = self._stream.listen(_on_status)
        try:
            await asyncio.wait_for(online.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        finally:
            subscription.cancel()
        return True

    def get_connection_info(self) -> dict[str, Any]:
        """Return a summary of the connectivity state.

        Returns:
            A dict with ``status``, ``initialized``, ``connections`` (the
            types of the up interfaces) and ``last_error``.
        """
        return {
            "status": self._state.status.value,
            "initialized": self._state.initialized,
            "connections": [connection.value for connection in self._connections],
            "last_error": self._state.last_error,
        }

    async def dispose(self) -> None:
        """Stop watching, close the status stream and the probe client."""
        if self._disposed:
            return
        self._disposed = True
        if self._init_task is not None:
            self._init_task.cancel()
            await asyncio.wait({self._init_task})
            self._init_task = None
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
        self._stream.close()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _check(self) -> None:
        connections = await self._source.connections()
        self._connections = connections
        self._set_status(await self._evaluate(connections))

    async def _evaluate(self, connections: list[ConnectionType]) -> NetworkStatus:
        if not any(connection is not ConnectionType.OTHER for connection in connections):
            return NetworkStatus.OFFLINE
        if await self._probe():
            return NetworkStatus.ONLINE
        return NetworkStatus.OFFLINE

    async def _probe(self) -> bool:
        client = self._get_client()
        for endpoint in self._probe_endpoints:
            try:
                response = await client.get(endpoint, timeout=self._probe_timeout)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.debug(f"Reachability probe {endpoint} failed: {exc}")
                continue
            if response.is_success:
                return True
            logger.debug(f"Reachability probe {endpoint} returned {response.status_code}")
        return False

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def _watch(self) -> None:
        while True:
            try:
                async for connections in self._source.watch():
                    self._connections = connections
                    self._set_status(await self._evaluate(connections))
            except ConnectivityCheckError as exc:
                self._record_error(exc)
            await asyncio.sleep(self._poll_interval)

    def _record_error(self, exc: Exception) -> None:
        logger.warning(f"Connectivity monitoring failed: {exc}")
        self._state.last_error = str(exc)
        self._set_status(NetworkStatus.UNKNOWN)

    def _set_status(self, status: NetworkStatus) -> None:
        if status is self._state.status:
            return
        logger.debug(f"Network status changed: {self._state.status.value} -> {status.value}")
        self._state.status = status
        self._stream.emit(status)
