r"""aresguard - HTTP client layer for flaky networks and expiring tokens.

This package augments ``httpx.AsyncClient`` with three behaviors that
usually end up scattered across an application:

Key Features:
    - Bearer token authentication with a single-flight token refresh on
      401 and FIFO replay of the requests waiting for it
    - Logout callback on unrecoverable 401, with a cooldown against
      logout storms
    - Connectivity monitoring from the OS interfaces, confirmed by HTTP
      reachability probes, with a status stream
    - Offline queue returning a 503 sentinel right away and replaying the
      queued requests once the network is back
    - Waiting for the network and retrying transport errors inside the
      request pipeline
    - Read-through response cache with TTL, size bound and background
      revalidation
    - Cancellation tokens, observer hooks and structured logging

Example:
    ```pycon
    >>> from aresguard import AsyncGuardClient, ClientConfig, TokenAuthCallbacks
    >>> async def main():  # doctest: +SKIP
    ...     async def refresh(refresh_token):
    ...         return await fetch_new_access_token(refresh_token)
    ...
    ...     callbacks = TokenAuthCallbacks("access", "refresh", on_refresh_token=refresh)
    ...     async with AsyncGuardClient(
    ...         base_url="https://api.example.com",
    ...         config=ClientConfig(handle_network=True),
    ...         auth_callbacks=callbacks,
    ...     ) as client:
    ...         response = await client.get("/posts", use_cache=True)
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncGuardClient",
    "AuthCallbacks",
    "AuthConfig",
    "AuthError",
    "CacheError",
    "CancelToken",
    "ClientConfig",
    "ConnectivityCheckError",
    "ConnectivityMonitor",
    "HttpRequestError",
    "MemoryStore",
    "NetworkOfflineError",
    "NetworkStatus",
    "RequestCancelledError",
    "ResponseCache",
    "SQLiteStore",
    "TokenAuthCallbacks",
    "__version__",
    "wrap_http_error",
]

from importlib.metadata import PackageNotFoundError, version

from aresguard.auth import AuthCallbacks, AuthConfig, TokenAuthCallbacks
from aresguard.cache import MemoryStore, ResponseCache, SQLiteStore
from aresguard.cancel import CancelToken
from aresguard.client import AsyncGuardClient
from aresguard.core.config import ClientConfig
from aresguard.exceptions import (
    AuthError,
    CacheError,
    ConnectivityCheckError,
    HttpRequestError,
    NetworkOfflineError,
    RequestCancelledError,
    wrap_http_error,
)
from aresguard.network import ConnectivityMonitor, NetworkStatus

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
