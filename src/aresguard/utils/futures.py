r"""Result slots of queued requests."""

from __future__ import annotations

__all__ = ["new_result_future"]

import asyncio


def _retrieve_exception(future: asyncio.Future) -> None:
    # Rejected slots may never be awaited.
    if not future.cancelled():
        future.exception()


def new_result_future() -> asyncio.Future:
    """Return a future of the running loop that can be rejected silently.

    The exception of the future is still raised to whoever awaits it.
    """
    future = asyncio.get_running_loop().create_future()
    future.add_done_callback(_retrieve_exception)
    return future
