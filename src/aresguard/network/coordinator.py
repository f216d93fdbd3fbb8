r"""Network-aware request coordination.

``NetworkCoordinator`` plays two roles:

* It owns the offline queue. The client enqueues the requests it cannot
  send while offline and returns the offline sentinel right away. When
  the monitor reports ``ONLINE`` again the queue is drained in FIFO
  order and the future of every entry is resolved with the outcome of
  its replay.
* It is the ``network`` stage of the request pipeline. For requests
  with network handling enabled it fails fast or waits while offline,
  and retries transport errors once the network is back.
"""

from __future__ import annotations

__all__ = ["NetworkCoordinator", "QueuedRequest"]

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from aresguard.core.config import ClientConfig
from aresguard.core.request import RequestMetadata
from aresguard.exceptions import NetworkOfflineError, RequestCancelledError
from aresguard.network.status import NetworkStatus
from aresguard.pipeline import CallNext, Stage
from aresguard.utils.futures import new_result_future

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from aresguard.cancel import CancelToken
    from aresguard.core.request import RequestSpec
    from aresguard.network.monitor import ConnectivityMonitor
    from aresguard.network.stream import Subscription

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(eq=False)
class QueuedRequest:
    r"""A request waiting in the offline queue.

    Attributes:
        spec: The request to replay.
        result: Future resolved with the response of the replay, or
            rejected with its error or a ``RequestCancelledError``.
        enqueued_at: Unix time of the insertion.
    """

    spec: RequestSpec
    result: asyncio.Future = field(repr=False)
    enqueued_at: float = field(default_factory=time.time)
    _cancel_callback: Callable[[CancelToken], None] | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def encrypt_body(self) -> bool:
        return self.spec.encrypt_body

    @property
    def use_cache(self) -> bool:
        return self.spec.use_cache

    @property
    def cancel_token(self) -> CancelToken | None:
        return self.spec.cancel_token

    @property
    def done(self) -> bool:
        return self.result.done()

    def __await__(self):  # noqa: ANN204
        return self.result.__await__()


class NetworkCoordinator(Stage):
    r"""Offline queue and ``network`` pipeline stage.

    Args:
        monitor: The connectivity monitor.
        replay: Coroutine function sending a queued request again
            through the whole client path.
        config: The client configuration.
    """

    name = "network"

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        *,
        replay: Callable[[RequestSpec], Awaitable[httpx.Response]],
        config: ClientConfig | None = None,
    ) -> None:
        self._monitor = monitor
        self._replay = replay
        self._config = config or ClientConfig()
        self._queue: list[QueuedRequest] = []
        self._subscription: Subscription[NetworkStatus] | None = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(queued={len(self._queue)}, status={self._monitor.status.value})"

    @property
    def queued_requests_count(self) -> int:
        return len(self._queue)

    @property
    def queued_requests(self) -> list[QueuedRequest]:
        return list(self._queue)

    def start(self) -> None:
        """Listen to the monitor and drain the queue on each transition to ``ONLINE``."""
        if self._subscription is None and not self._closed:
            self._subscription = self._monitor.status_stream.listen(self._on_status)

    def enqueue(self, spec: RequestSpec) -> QueuedRequest:
        """Add a request to the offline queue.

        Cancelling the request's cancel token removes the entry and
        rejects it with ``RequestCancelledError``.

        Args:
            spec: The request to replay once online.

        Returns:
            The queue entry. Await it, or its ``result``, for the outcome.
        """
        entry = QueuedRequest(spec=spec, result=new_result_future())
        self._queue.append(entry)
        logger.debug(
            f"Queued {spec.method} request to {spec.url} while offline "
            f"({len(self._queue)} queued)"
        )
        token = spec.cancel_token
        if token is not None:

            def _on_cancel(token: CancelToken) -> None:
                self._cancel(entry, token.reason)

            entry._cancel_callback = _on_cancel
            token.add_callback(_on_cancel)
        return entry

    async def drain(self) -> int:
        """Replay the entries queued when the drain started, in FIFO order.

        Entries added during the drain wait for the next drain. The drain
        stops early if the monitor reports ``OFFLINE`` again.

        Returns:
            The number of replayed entries.
        """
        snapshot = list(self._queue)
        if not snapshot:
            return 0
        logger.debug(f"Draining {len(snapshot)} queued requests")
        replayed = 0
        for entry in snapshot:
            if entry not in self._queue:
                continue
            if self._monitor.is_offline:
                logger.debug("Network lost while draining, keeping the remaining requests queued")
                break
            self._queue.remove(entry)
            self._detach(entry)
            token = entry.cancel_token
            if token is not None and token.is_cancelled:
                self._reject(entry, RequestCancelledError(entry.spec.method, entry.spec.url, token.reason))
                continue
            replayed += 1
            try:
                response = await self._replay(entry.spec)
            except asyncio.CancelledError:
                self._reject(
                    entry,
                    RequestCancelledError(entry.spec.method, entry.spec.url, "Client was closed"),
                )
                raise
            except Exception as exc:  # noqa: BLE001
                logger.debug(f"Replay of queued {entry.spec.method} {entry.spec.url} failed: {exc}")
                self._reject(entry, exc)
            else:
                if not entry.result.done():
                    entry.result.set_result(response)
        return replayed

    def clear_queue(self) -> int:
        """Reject every queued request with "Queue was manually cleared".

        Returns:
            The number of rejected requests.
        """
        return self._reject_all("Queue was manually cleared")

    async def close(self) -> None:
        """Reject every queued request and stop listening to the monitor."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._reject_all("Client was closed")
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def handle(self, request: httpx.Request, call_next: CallNext) -> httpx.Response:
        metadata = RequestMetadata.of(request)
        if not metadata.handle_network:
            return await call_next(request)
        if not self._monitor.is_initialized:
            await self._monitor.initialize()
        if self._monitor.is_offline:
            if metadata.throw_on_offline:
                raise NetworkOfflineError(request.method, str(request.url))
            await self._wait_for_network(request)

        attempt = 0
        while True:
            try:
                return await call_next(request)
            except httpx.TransportError as exc:
                if not metadata.auto_retry or attempt >= metadata.max_retries:
                    raise
                attempt += 1
                logger.debug(
                    f"{request.method} request to {request.url} failed with "
                    f"{type(exc).__name__}, network retry {attempt}/{metadata.max_retries}"
                )
                if self._monitor.is_offline:
                    await self._wait_for_network(request, cause=exc)
                await asyncio.sleep(self._config.network_backoff.calculate(attempt - 1))

    async def _wait_for_network(
        self, request: httpx.Request, cause: BaseException | None = None
    ) -> None:
        logger.debug(f"Waiting for the network before sending {request.method} {request.url}")
        if not await self._monitor.wait_for_online(self._config.offline_wait_timeout):
            raise NetworkOfflineError(request.method, str(request.url), cause=cause)
        logger.debug("Network connection restored")

    def _on_status(self, status: NetworkStatus) -> None:
        if status is not NetworkStatus.ONLINE or not self._queue or self._closed:
            return
        task = asyncio.create_task(self.drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel(self, entry: QueuedRequest, reason: str | None) -> None:
        if entry in self._queue:
            self._queue.remove(entry)
        self._reject(
            entry,
            RequestCancelledError(
                entry.spec.method, entry.spec.url, reason or "Request was cancelled"
            ),
        )

    def _reject_all(self, message: str) -> int:
        entries, self._queue = self._queue, []
        for entry in entries:
            self._detach(entry)
            self._reject(entry, RequestCancelledError(entry.spec.method, entry.spec.url, message))
        if entries:
            logger.debug(f"Rejected {len(entries)} queued requests: {message}")
        return len(entries)

    @staticmethod
    def _detach(entry: QueuedRequest) -> None:
        token = entry.cancel_token
        if token is not None and entry._cancel_callback is not None:
            token.remove_callback(entry._cancel_callback)

    @staticmethod
    def _reject(entry: QueuedRequest, exc: BaseException) -> None:
        if not entry.result.done():
            entry.result.set_exception(exc)
