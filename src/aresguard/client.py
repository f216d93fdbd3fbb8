r"""Asynchronous client combining caching, authentication and network
awareness.

``AsyncGuardClient`` wraps an ``httpx.AsyncClient``. Every request goes
through a fixed pipeline of stages, outermost first:

* ``network``: waits or fails while offline and retries transport
  errors once the network is back;
* ``auth``: attaches the bearer token and recovers 401 responses with a
  single-flight token refresh;
* ``logging``: logs every transport call and invokes the observer hooks.

Before the pipeline, the client answers GET requests from the response
cache when asked to, and queues requests made while offline.
"""

from __future__ import annotations

__all__ = ["AsyncGuardClient"]

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from aresguard.auth.manager import AuthManager
from aresguard.cache.manager import ResponseCache
from aresguard.core.config import DEFAULT_TIMEOUT, ClientConfig
from aresguard.core.request import RequestMetadata, RequestSpec
from aresguard.core.validation import validate_timeout
from aresguard.exceptions import NetworkOfflineError, RequestCancelledError
from aresguard.network.coordinator import NetworkCoordinator
from aresguard.network.monitor import ConnectivityMonitor
from aresguard.pipeline import ObserverStage, Pipeline
from aresguard.responses import cached_response, offline_response

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from types import TracebackType
    from typing import Self

    from aresguard.auth.callbacks import AuthCallbacks
    from aresguard.auth.config import AuthConfig
    from aresguard.cache.storage import KeyValueStore
    from aresguard.cancel import CancelToken
    from aresguard.network.status import NetworkStatus
    from aresguard.network.stream import StatusStream

logger: logging.Logger = logging.getLogger(__name__)


class AsyncGuardClient:
    r"""Asynchronous HTTP client with caching, token refresh and offline
    handling.

    Args:
        base_url: Base URL of the relative request URLs.
        config: The client configuration. Defaults to ``ClientConfig()``.
        timeout: Maximum seconds to wait for a response. Must be > 0.
        headers: Headers sent with every request.
        client: An existing ``httpx.AsyncClient`` to send the requests
            with. It is not closed by this client. ``base_url``,
            ``timeout``, ``headers`` and ``transport`` are ignored when it
            is given.
        transport: Optional transport of the owned ``httpx.AsyncClient``.
        monitor: A shared connectivity monitor. A monitor owned by this
            client is created if omitted.
        cache: A response cache. If omitted, a cache owned by this client
            is created over ``cache_store``.
        cache_store: The store of the owned cache. Defaults to a
            ``MemoryStore`` private to this client.
        auth_callbacks: Enables authentication right away.
        auth_config: The auth configuration used with ``auth_callbacks``.

    Example:
        ```pycon
        >>> import asyncio
        >>> from aresguard import AsyncGuardClient, ClientConfig
        >>> async def main():  # doctest: +SKIP
        ...     config = ClientConfig(handle_network=True)
        ...     async with AsyncGuardClient(base_url="https://api.example.com", config=config) as client:
        ...         response = await client.get("/posts", use_cache=True)
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(
        self,
        *,
        base_url: str | httpx.URL = "",
        config: ClientConfig | None = None,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        monitor: ConnectivityMonitor | None = None,
        cache: ResponseCache | None = None,
        cache_store: KeyValueStore | None = None,
        auth_callbacks: AuthCallbacks | None = None,
        auth_config: AuthConfig | None = None,
    ) -> None:
        validate_timeout(timeout)
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers
        self._transport = transport
        self._config = config if config is not None else ClientConfig()

        self._client = client
        self._owns_client = client is None
        self._monitor = monitor if monitor is not None else ConnectivityMonitor()
        self._owns_monitor = monitor is None
        self._cache = (
            cache
            if cache is not None
            else ResponseCache(
                cache_store,
                cache_duration=self._config.cache_duration,
                max_entries=self._config.max_cache_size,
            )
        )
        self._owns_cache = cache is None

        self._auth = AuthManager()
        if auth_callbacks is not None:
            self._auth.configure(auth_callbacks, auth_config)
        self._network = NetworkCoordinator(self._monitor, replay=self._replay, config=self._config)
        self._pipeline = Pipeline(
            self._send,
            [self._network, self._auth, ObserverStage(self._config)],
        )
        self._tasks: set[asyncio.Task] = set()
        self._entered = False

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(base_url={str(self._base_url)!r}, "
            f"stages={self._pipeline.names})"
        )

    async def __aenter__(self) -> Self:
        """Create the underlying httpx client and start the network
        handling.

        Returns:
            The client instance.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            )
        self._entered = True
        self._network.start()
        if self._config.handle_network:
            await self._monitor.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel the background tasks, reject the queued requests and
        release the owned resources."""
        if not self._entered:
            return
        self._entered = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        await self._network.close()
        if self._auth.coordinator is not None:
            self._auth.coordinator.clear()
        if self._owns_monitor:
            await self._monitor.dispose()
        if self._owns_cache:
            await self._cache.close()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    @property
    def auth(self) -> AuthManager:
        return self._auth

    ##############
    #    Auth    #
    ##############

    def configure_auth(self, callbacks: AuthCallbacks, config: AuthConfig | None = None) -> None:
        self._auth.configure(callbacks, config)

    def clear_auth(self) -> None:
        self._auth.clear()

    def update_auth_tokens(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        self._auth.update_tokens(access_token=access_token, refresh_token=refresh_token)

    async def is_authenticated(self) -> bool:
        return await self._auth.is_authenticated()

    @property
    def auth_status(self) -> dict[str, Any]:
        return self._auth.get_status()

    #################
    #    Network    #
    #################

    @property
    def network_status(self) -> NetworkStatus:
        return self._monitor.status

    @property
    def is_online(self) -> bool:
        return self._monitor.is_online

    @property
    def is_offline(self) -> bool:
        return self._monitor.is_offline

    @property
    def network_info(self) -> dict[str, Any]:
        return self._monitor.get_connection_info()

    @property
    def status_stream(self) -> StatusStream[NetworkStatus]:
        return self._monitor.status_stream

    async def refresh_network_status(self) -> NetworkStatus:
        return await self._monitor.refresh()

    @property
    def queued_requests_count(self) -> int:
        return self._network.queued_requests_count

    def clear_queue(self) -> int:
        """Reject every request waiting in the offline queue.

        Returns:
            The number of rejected requests.
        """
        return self._network.clear_queue()

    ##################
    #    Requests    #
    ##################

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        content: bytes | str | None = None,
        data: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | httpx.Timeout | None = None,
        extensions: dict[str, Any] | None = None,
        cancel_token: CancelToken | None = None,
        encrypt_body: bool = False,
        use_cache: bool = False,
        handle_network: bool | None = None,
        auto_retry: bool | None = None,
        max_retries: int | None = None,
        throw_on_offline: bool | None = None,
        queue_when_offline: bool = False,
        is_refresh_request: bool = False,
    ) -> httpx.Response:
        r"""Send an HTTP request.

        Args:
            method: The HTTP method.
            url: The URL, absolute or relative to the base URL.
            params: Optional query parameters.
            headers: Optional request headers.
            content: Optional raw body.
            data: Optional form body.
            json: Optional JSON body.
            timeout: Optional timeout overriding the client timeout.
            extensions: Optional request extensions for the transport.
            cancel_token: Optional handle cancelling the request.
            encrypt_body: Whether the body goes through the configured
                ``encryption_function``. The content type defaults to
                ``text/plain``.
            use_cache: Whether a GET is answered from the response cache
                and stored in it.
            handle_network: Overrides ``ClientConfig.handle_network``.
            auto_retry: Overrides
                ``ClientConfig.auto_retry_on_network_restore``.
            max_retries: Overrides ``ClientConfig.max_network_retries``.
            throw_on_offline: Overrides ``ClientConfig.throw_on_offline``.
            queue_when_offline: Whether a non-GET request made while
                offline is queued and replayed once online. GET requests
                are always queued.
            is_refresh_request: Marks a token refresh call, whose 401
                never triggers another refresh.

        Returns:
            The response. While offline this is the 503 offline
            sentinel, see ``aresguard.responses``.

        Raises:
            RuntimeError: If called outside of the async context manager.
            AuthError: If a 401 could not be recovered.
            NetworkOfflineError: If the request needs the network while
                offline and may not wait for it.
            RequestCancelledError: If ``cancel_token`` was cancelled.
            httpx.TransportError: If the transport still fails after the
                network retries.
        """
        metadata = RequestMetadata(
            handle_network=self._pick(handle_network, self._config.handle_network),
            auto_retry=self._pick(auto_retry, self._config.auto_retry_on_network_restore),
            max_retries=self._pick(max_retries, self._config.max_network_retries),
            throw_on_offline=self._pick(throw_on_offline, self._config.throw_on_offline),
            is_refresh_request=is_refresh_request,
        )
        spec = RequestSpec(
            method=method.upper(),
            url=url,
            params=params,
            headers=headers,
            content=content,
            data=data,
            json=json,
            timeout=timeout,
            extensions=dict(extensions or {}),
            encrypt_body=encrypt_body,
            use_cache=use_cache,
            queue_when_offline=queue_when_offline,
            cancel_token=cancel_token,
            metadata=metadata,
        )
        return await self._execute(spec)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        r"""Send a GET request.

        Args:
            url: The URL to send the GET request to.
            **kwargs: Additional keyword arguments (see request() method).

        Example:
            ```pycon
            >>> import asyncio
            >>> from aresguard import AsyncGuardClient
            >>> async def main():  # doctest: +SKIP
            ...     async with AsyncGuardClient() as client:
            ...         response = await client.get("https://api.example.com/posts", use_cache=True)
            ...
            >>> asyncio.run(main())  # doctest: +SKIP

            ```
        """
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        r"""Send a POST request.

        Args:
            url: The URL to send the POST request to.
            **kwargs: Additional keyword arguments (see request() method).

        Example:
            ```pycon
            >>> import asyncio
            >>> from aresguard import AsyncGuardClient
            >>> async def main():  # doctest: +SKIP
            ...     async with AsyncGuardClient() as client:
            ...         response = await client.post(
            ...             "https://api.example.com/posts", json={"title": "x"}, encrypt_body=True
            ...         )
            ...
            >>> asyncio.run(main())  # doctest: +SKIP

            ```
        """
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PUT request. See request() for the keyword arguments."""
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PATCH request. See request() for the keyword arguments."""
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request. See request() for the keyword arguments."""
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a HEAD request. See request() for the keyword arguments."""
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send an OPTIONS request. See request() for the keyword arguments."""
        return await self.request("OPTIONS", url, **kwargs)

    async def download(self, url: str, path: str | Path, **kwargs: Any) -> httpx.Response:
        r"""Download a resource to a file.

        The file is written only when the response is successful. A file
        left incomplete by a write error is removed.

        Args:
            url: The URL of the resource.
            path: The destination file. Parent directories are created.
            **kwargs: Additional keyword arguments (see request() method).

        Returns:
            The response of the GET request.

        Raises:
            OSError: If the file cannot be written.
        """
        response = await self.request("GET", url, **kwargs)
        if not response.is_success:
            logger.debug(f"Download of {url} returned {response.status_code}, nothing written")
            return response
        await asyncio.to_thread(_write_file, Path(path), response.content)
        logger.debug(f"Downloaded {url} to {path} ({len(response.content)} bytes)")
        return response

    async def _execute(self, spec: RequestSpec, *, replaying: bool = False) -> httpx.Response:
        self._ensure_client()
        token = spec.cancel_token
        if token is not None and token.is_cancelled:
            raise RequestCancelledError(spec.method, spec.url, token.reason)

        if spec.metadata.handle_network and not replaying:
            if not self._monitor.is_initialized:
                await self._monitor.initialize()
            if self._monitor.is_offline:
                return await self._handle_offline(spec)

        use_cache = spec.use_cache and spec.is_get
        if use_cache and not replaying:
            payload = await self._cache.get(self._cache_url(spec), spec.params)
            if payload is not None:
                logger.debug(f"Serving {spec.url} from cache, revalidating in background")
                self._spawn(self._revalidate(spec))
                return cached_response(self._build_request(spec), payload)

        response = await self._send_spec(spec)
        if use_cache and response.status_code == 200:
            await self._store(spec, response)
        return response

    async def _replay(self, spec: RequestSpec) -> httpx.Response:
        return await self._execute(spec, replaying=True)

    async def _handle_offline(self, spec: RequestSpec) -> httpx.Response:
        request = self._build_request(spec)
        if spec.is_get:
            if spec.use_cache:
                payload = await self._cache.get(self._cache_url(spec), spec.params)
                if payload is not None:
                    logger.debug(f"Offline, serving {spec.url} from cache")
                    return cached_response(request, payload)
            entry = self._network.enqueue(spec)
            return offline_response(request, queued=True, queued_request=entry)
        if spec.metadata.throw_on_offline:
            raise NetworkOfflineError(spec.method, spec.url)
        if spec.queue_when_offline:
            entry = self._network.enqueue(spec)
            return offline_response(request, queued=True, queued_request=entry)
        logger.debug(f"Offline, {spec.method} {spec.url} not queued")
        return offline_response(request, queued=False)

    async def _send_spec(self, spec: RequestSpec) -> httpx.Response:
        request = self._build_request(spec)
        token = spec.cancel_token
        if token is None:
            return await self._pipeline.send(request)

        task = asyncio.ensure_future(self._pipeline.send(request))
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            task.exception()
        raise RequestCancelledError(spec.method, spec.url, token.reason)

    async def _send(self, request: httpx.Request) -> httpx.Response:
        return await self._ensure_client().send(request)

    def _build_request(self, spec: RequestSpec) -> httpx.Request:
        headers = dict(spec.headers or {})
        content, data, json_body = spec.content, spec.data, spec.json
        if spec.encrypt_body and spec.body is not None:
            content = self._config.encryption_function(spec.body)
            data = json_body = None
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = "text/plain"
        return self._ensure_client().build_request(
            spec.method,
            spec.url,
            params=spec.params,
            headers=headers,
            content=content,
            data=data,
            json=json_body,
            timeout=spec.timeout if spec.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            extensions={**spec.extensions, **spec.metadata.to_extensions()},
        )

    def _cache_url(self, spec: RequestSpec) -> str:
        """Return the absolute URL of a request, without ``params``.

        Cache entries are keyed by it so that two clients with different
        base URLs never share an entry.
        """
        return str(self._ensure_client().build_request("GET", spec.url).url)

    async def _store(self, spec: RequestSpec, response: httpx.Response) -> None:
        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        await self._cache.put(self._cache_url(spec), spec.params, payload)

    async def _revalidate(self, spec: RequestSpec) -> None:
        try:
            response = await self._send_spec(replace(spec, cancel_token=None))
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Background revalidation of {spec.url} failed: {exc}")
            return
        if response.status_code == 200:
            await self._store(spec, response)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure the client is available for use.

        Raises:
            RuntimeError: If the client is used outside of a context manager.
        """
        if not self._entered or self._client is None:
            msg = "AsyncGuardClient must be used within an async context manager (async with statement)"
            raise RuntimeError(msg)
        return self._client

    @staticmethod
    def _pick(value: Any, default: Any) -> Any:
        return default if value is None else value


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        path.write_bytes(content)
    except OSError:
        path.unlink(missing_ok=True)
        raise
