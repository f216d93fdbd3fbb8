r"""Cancellation handle for queued and in-flight requests."""

from __future__ import annotations

__all__ = ["CancelToken"]

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)


class CancelToken:
    r"""Cancellation handle shared between a caller and the client.

    Cancelling the token fails the request it was passed to with a
    ``RequestCancelledError``: a queued request is removed from the
    offline queue, an in-flight request is abandoned. A token can be
    shared by several requests. Cancelling one waiter never aborts a
    token refresh that other requests are waiting for.

    Example:
        ```pycon
        >>> from aresguard.cancel import CancelToken
        >>> token = CancelToken()
        >>> token.is_cancelled
        False
        >>> token.cancel("user navigated away")
        >>> token.is_cancelled, token.reason
        (True, 'user navigated away')

        ```
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[CancelToken], None]] = []
        self._event: asyncio.Event | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(cancelled={self._cancelled}, reason={self._reason!r})"

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Request was cancelled") -> None:
        """Cancel the token.

        Registered callbacks run once, in registration order. Cancelling
        an already cancelled token does nothing.

        Args:
            reason: The message of the resulting ``RequestCancelledError``.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Error in cancel token callback: {exc}")

    def add_callback(self, callback: Callable[[CancelToken], None]) -> None:
        """Register a callback run when the token is cancelled.

        The callback runs immediately if the token is already cancelled.
        """
        if self._cancelled:
            callback(self)
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[CancelToken], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()
