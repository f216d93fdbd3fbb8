r"""Observer hook types.

The ``logging`` stage of the request pipeline calls these hooks around
every transport call, including the replays performed by the auth and
network coordinators. Hooks are plain synchronous callables; an error
raised by a hook is logged and never reaches the request caller.

Example:
    ```pycon
    >>> from aresguard.callbacks import ResponseInfo
    >>> from aresguard.core.config import ClientConfig
    >>> def log_response(info: ResponseInfo) -> None:
    ...     print(f"{info.method} {info.url} -> {info.status_code}")
    ...
    >>> config = ClientConfig(on_response=log_response)

    ```
"""

from __future__ import annotations

__all__ = ["FailureInfo", "RequestInfo", "ResponseInfo", "invoke_hook"]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """Information passed to the ``on_request`` hook.

    Attributes:
        url: The URL being requested.
        method: The HTTP method (e.g., "GET", "POST").
        request_id: The identifier of the request in structured logs.
    """

    url: str
    method: str
    request_id: str


@dataclass
class ResponseInfo:
    """Information passed to the ``on_response`` hook.

    Attributes:
        url: The URL that was requested.
        method: The HTTP method.
        request_id: The identifier of the request in structured logs.
        status_code: The HTTP status code of the response.
        response: The HTTP response object.
        duration: Seconds spent in the transport call.
    """

    url: str
    method: str
    request_id: str
    status_code: int
    response: httpx.Response
    duration: float


@dataclass
class FailureInfo:
    """Information passed to the ``on_failure`` hook.

    Attributes:
        url: The URL that was requested.
        method: The HTTP method.
        request_id: The identifier of the request in structured logs.
        error: The exception raised by the transport call.
        duration: Seconds spent in the transport call.
    """

    url: str
    method: str
    request_id: str
    error: BaseException
    duration: float


def invoke_hook(hook: Callable[[Any], None] | None, info: Any) -> None:
    """Invoke an observer hook if provided.

    Args:
        hook: The optional hook.
        info: The information object passed to the hook.
    """
    if hook is None:
        return
    try:
        hook(info)
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"Error in {type(info).__name__} hook: {exc}")
