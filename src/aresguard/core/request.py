r"""Request descriptors shared by the client and the coordinators.

``RequestSpec`` is what the client keeps to build, queue and replay a
request. ``RequestMetadata`` is the per-request policy bag carried in
the ``extensions`` of the ``httpx.Request`` so that pipeline stages can
read it without the parameters being threaded through every call.
"""

from __future__ import annotations

__all__ = ["METADATA_EXTENSION", "RequestMetadata", "RequestSpec"]

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from aresguard.cancel import CancelToken

METADATA_EXTENSION = "aresguard"


@dataclass(frozen=True)
class RequestMetadata:
    """Policy of a single request.

    Attributes:
        handle_network: Whether the network stage checks connectivity.
        auto_retry: Whether a transport error is retried after the network
            is restored.
        max_retries: Maximum number of network retries.
        throw_on_offline: Whether an offline request fails immediately.
        is_refresh_request: Whether the request is a token refresh call.
            A 401 on such a request never triggers another refresh.
    """

    handle_network: bool = False
    auto_retry: bool = True
    max_retries: int = 3
    throw_on_offline: bool = False
    is_refresh_request: bool = False

    @classmethod
    def of(cls, request: httpx.Request) -> RequestMetadata:
        """Return the metadata attached to a request.

        Requests built outside of the client carry no metadata and get
        the defaults.

        Example:
            ```pycon
            >>> import httpx
            >>> from aresguard.core.request import RequestMetadata
            >>> RequestMetadata.of(httpx.Request("GET", "https://example.com")).handle_network
            False

            ```
        """
        metadata = request.extensions.get(METADATA_EXTENSION)
        if isinstance(metadata, RequestMetadata):
            return metadata
        return cls()

    def to_extensions(self) -> dict[str, Any]:
        return {METADATA_EXTENSION: self}


@dataclass
class RequestSpec:
    """Everything needed to build, queue and replay a request.

    Attributes:
        method: The upper-case HTTP method.
        url: The URL or path relative to the client's base URL.
        params: Optional query parameters.
        headers: Optional request headers.
        content: Optional raw body.
        data: Optional form body.
        json: Optional JSON body.
        timeout: Optional per-request timeout override.
        extensions: Additional request extensions for the transport.
        encrypt_body: Whether the body goes through the encryption function.
        use_cache: Whether a GET reads and updates the response cache.
        queue_when_offline: Whether a non-GET request is queued while offline.
        cancel_token: Optional cancellation handle.
        metadata: The request policy.
    """

    method: str
    url: str
    params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    content: bytes | str | None = None
    data: dict[str, Any] | None = None
    json: Any = None
    timeout: float | httpx.Timeout | None = None
    extensions: dict[str, Any] = field(default_factory=dict)
    encrypt_body: bool = False
    use_cache: bool = False
    queue_when_offline: bool = False
    cancel_token: CancelToken | None = None
    metadata: RequestMetadata = field(default_factory=RequestMetadata)

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    @property
    def body(self) -> Any:
        """The body as given by the caller, whatever its kind."""
        if self.json is not None:
            return self.json
        if self.data is not None:
            return self.data
        return self.content
