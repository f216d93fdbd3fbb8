r"""Locally built responses.

Two kinds of responses never come from the transport: the offline
sentinel returned while the network is down, and responses served from
the response cache. Both carry flags in ``response.extensions`` that the
accessors below read.
"""

from __future__ import annotations

__all__ = [
    "OFFLINE_MESSAGE",
    "OFFLINE_STATUS_CODE",
    "cached_response",
    "is_from_cache",
    "is_network_error",
    "is_queued",
    "offline_response",
    "queued_request",
]

from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from aresguard.network.coordinator import QueuedRequest

OFFLINE_STATUS_CODE = 503
OFFLINE_MESSAGE = "No Internet !"


def offline_response(
    request: httpx.Request, *, queued: bool, queued_request: QueuedRequest | None = None
) -> httpx.Response:
    r"""Return the sentinel response of a request made while offline.

    The body is ``{"statusCode": 503, "message": "No Internet !"}``.

    Args:
        request: The request that could not be sent.
        queued: Whether the request was queued for replay.
        queued_request: The queue entry, whose ``result`` resolves with
            the outcome of the replay.

    Returns:
        A 503 response.

    Example:
        ```pycon
        >>> import httpx
        >>> from aresguard.responses import is_network_error, offline_response
        >>> response = offline_response(httpx.Request("GET", "https://example.com"), queued=False)
        >>> response.status_code, response.json()["message"], is_network_error(response)
        (503, 'No Internet !', True)

        ```
    """
    return httpx.Response(
        OFFLINE_STATUS_CODE,
        json={"statusCode": OFFLINE_STATUS_CODE, "message": OFFLINE_MESSAGE},
        request=request,
        extensions={
            "network_error": True,
            "message": OFFLINE_MESSAGE,
            "queued": queued,
            "queued_request": queued_request,
        },
    )


def cached_response(request: httpx.Request, payload: Any) -> httpx.Response:
    r"""Return a 200 response carrying a cached payload.

    A string payload is returned as text, anything else as JSON.
    """
    if isinstance(payload, str):
        return httpx.Response(200, text=payload, request=request, extensions={"from_cache": True})
    return httpx.Response(200, json=payload, request=request, extensions={"from_cache": True})


def is_from_cache(response: httpx.Response) -> bool:
    return bool(response.extensions.get("from_cache", False))


def is_network_error(response: httpx.Response) -> bool:
    """Return whether a response is the offline sentinel."""
    return bool(response.extensions.get("network_error", False))


def is_queued(response: httpx.Response) -> bool:
    return bool(response.extensions.get("queued", False))


def queued_request(response: httpx.Response) -> QueuedRequest | None:
    """Return the queue entry of a sentinel response, if it was queued."""
    return response.extensions.get("queued_request")
