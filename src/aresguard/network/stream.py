r"""Broadcast stream of connectivity status changes.

A subscriber either registers a callback with ``listen()`` or iterates
over a subscription returned by ``subscribe()``. Nothing is replayed to
a late subscriber: it only sees the values emitted after it subscribed.
"""

from __future__ import annotations

__all__ = ["StatusStream", "Subscription"]

import asyncio
import logging
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    r"""Handle of one subscriber of a ``StatusStream``.

    A subscription created without a callback buffers the emitted values
    and is consumed with ``async for``. The iteration ends when the
    subscription is cancelled or the stream is closed.
    """

    def __init__(
        self, stream: StatusStream[T], callback: Callable[[T], None] | None = None
    ) -> None:
        self._stream = stream
        self._callback = callback
        self._queue: asyncio.Queue | None = None if callback is not None else asyncio.Queue()
        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop receiving values. Cancelling twice does nothing."""
        if not self._active:
            return
        self._active = False
        self._stream._remove(self)
        if self._queue is not None:
            self._queue.put_nowait(_CLOSED)

    def _deliver(self, value: T) -> None:
        if self._callback is not None:
            try:
                self._callback(value)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Error in status stream listener: {exc}")
            return
        self._queue.put_nowait(value)

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        if self._queue is None:
            msg = "a callback subscription cannot be iterated"
            raise TypeError(msg)
        value = await self._queue.get()
        if value is _CLOSED:
            raise StopAsyncIteration
        return value


class StatusStream(Generic[T]):
    r"""Multi-subscriber broadcast of values.

    Example:
        ```pycon
        >>> from aresguard.network.stream import StatusStream
        >>> stream = StatusStream()
        >>> seen = []
        >>> subscription = stream.listen(seen.append)
        >>> stream.emit("online")
        >>> seen
        ['online']
        >>> subscription.cancel()
        >>> stream.emit("offline")
        >>> seen
        ['online']

        ```
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription[T]] = []
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def listen(self, callback: Callable[[T], None]) -> Subscription[T]:
        """Register a callback called synchronously with every new value.

        Errors raised by the callback are logged.
        """
        return self._add(Subscription(self, callback))

    def subscribe(self) -> Subscription[T]:
        """Return a subscription consumed with ``async for``."""
        return self._add(Subscription(self))

    def emit(self, value: T) -> None:
        if self._closed:
            return
        for subscription in list(self._subscriptions):
            subscription._deliver(value)

    def close(self) -> None:
        """Cancel every subscription. Later emissions are dropped."""
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription.cancel()

    def _add(self, subscription: Subscription[T]) -> Subscription[T]:
        if self._closed:
            subscription.cancel()
            return subscription
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
