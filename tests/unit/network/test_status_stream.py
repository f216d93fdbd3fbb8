from __future__ import annotations

import asyncio
import logging

import pytest

from aresguard.network.stream import StatusStream

##################################
#     Tests for StatusStream     #
##################################


def test_status_stream_listen_receives_values() -> None:
    stream: StatusStream[str] = StatusStream()
    seen: list[str] = []
    stream.listen(seen.append)
    stream.emit("online")
    stream.emit("offline")
    assert seen == ["online", "offline"]


def test_status_stream_multiple_listeners() -> None:
    stream: StatusStream[int] = StatusStream()
    first: list[int] = []
    second: list[int] = []
    stream.listen(first.append)
    stream.listen(second.append)
    stream.emit(1)
    assert first == [1]
    assert second == [1]
    assert stream.subscriber_count == 2


def test_status_stream_no_replay_to_late_listener() -> None:
    """Test that a late subscriber only sees later values."""
    stream: StatusStream[int] = StatusStream()
    stream.emit(1)
    seen: list[int] = []
    stream.listen(seen.append)
    stream.emit(2)
    assert seen == [2]


def test_status_stream_cancel_stops_delivery() -> None:
    stream: StatusStream[int] = StatusStream()
    seen: list[int] = []
    subscription = stream.listen(seen.append)
    subscription.cancel()
    subscription.cancel()
    stream.emit(1)
    assert seen == []
    assert not subscription.is_active
    assert stream.subscriber_count == 0


def test_status_stream_listener_error_logged(caplog: pytest.LogCaptureFixture) -> None:
    """Test that a failing listener does not prevent the others from
    receiving the value."""
    stream: StatusStream[int] = StatusStream()

    def broken(value: int) -> None:
        msg = f"cannot handle {value}"
        raise RuntimeError(msg)

    seen: list[int] = []
    stream.listen(broken)
    stream.listen(seen.append)
    with caplog.at_level(logging.WARNING):
        stream.emit(3)
    assert seen == [3]
    assert "Error in status stream listener: cannot handle 3" in caplog.text


def test_status_stream_listener_may_cancel_itself() -> None:
    stream: StatusStream[int] = StatusStream()
    seen: list[int] = []
    subscription = None

    def once(value: int) -> None:
        seen.append(value)
        subscription.cancel()

    subscription = stream.listen(once)
    stream.emit(1)
    stream.emit(2)
    assert seen == [1]


def test_status_stream_close() -> None:
    """Test that closing cancels every subscription and drops later
    values."""
    stream: StatusStream[int] = StatusStream()
    seen: list[int] = []
    subscription = stream.listen(seen.append)
    stream.close()
    stream.emit(1)
    assert stream.is_closed
    assert not subscription.is_active
    assert seen == []


def test_status_stream_listen_after_close() -> None:
    stream: StatusStream[int] = StatusStream()
    stream.close()
    subscription = stream.listen(print)
    assert not subscription.is_active
    assert stream.subscriber_count == 0


@pytest.mark.asyncio
async def test_status_stream_subscribe_iterates_values() -> None:
    stream: StatusStream[int] = StatusStream()
    subscription = stream.subscribe()
    stream.emit(1)
    stream.emit(2)
    subscription.cancel()
    assert [value async for value in subscription] == [1, 2]


@pytest.mark.asyncio
async def test_status_stream_subscribe_waits_for_value() -> None:
    stream: StatusStream[str] = StatusStream()
    subscription = stream.subscribe()
    next_value = asyncio.ensure_future(subscription.__anext__())
    await asyncio.sleep(0)
    assert not next_value.done()
    stream.emit("online")
    assert await asyncio.wait_for(next_value, 1.0) == "online"


@pytest.mark.asyncio
async def test_status_stream_close_ends_iteration() -> None:
    stream: StatusStream[int] = StatusStream()
    subscription = stream.subscribe()
    stream.close()
    assert [value async for value in subscription] == []


@pytest.mark.asyncio
async def test_status_stream_callback_subscription_not_iterable() -> None:
    stream: StatusStream[int] = StatusStream()
    subscription = stream.listen(print)
    with pytest.raises(TypeError, match=r"cannot be iterated"):
        await subscription.__anext__()
