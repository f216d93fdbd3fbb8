r"""Bearer token authentication with single-flight refresh.

``AuthCoordinator`` is the ``auth`` stage of the request pipeline. It
attaches the access token to every request and recovers 401 responses
by refreshing the token and replaying the request.

However many requests fail with 401 at the same time, one refresh
cycle runs: the first 401 starts it, the others join its queue. The
state check and the enqueue happen before any ``await`` so that two
concurrent handlers can never both start a cycle. The cycle runs in its
own task, so a caller that stops waiting does not abort the refresh the
other callers depend on. Once the refresh succeeds the queued requests
are replayed in FIFO order with the new token; once it fails they all
fail with ``AuthError`` and the logout callback runs, at most once per
``logout_cooldown``.
"""

from __future__ import annotations

__all__ = ["AuthCoordinator", "AuthSession", "PendingAuthRequest", "RefreshState"]

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from aresguard.auth.config import AuthConfig
from aresguard.core.request import RequestMetadata
from aresguard.exceptions import AuthError, RequestCancelledError
from aresguard.pipeline import CallNext, Stage
from aresguard.utils.futures import new_result_future

if TYPE_CHECKING:
    from collections.abc import Callable

    from aresguard.auth.callbacks import AuthCallbacks

logger: logging.Logger = logging.getLogger(__name__)


class RefreshState(enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class AuthSession:
    r"""Tokens known by the coordinator.

    Attributes:
        access_token: The last access token read or obtained.
        refresh_token: The refresh token set through ``update_tokens``.
        last_logout_at: Monotonic time of the last logout callback.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    last_logout_at: float | None = None


@dataclass(eq=False)
class PendingAuthRequest:
    r"""A request waiting for the outcome of the refresh cycle.

    Attributes:
        request: The request that received a 401.
        call_next: The rest of the pipeline after the ``auth`` stage,
            used to replay the request.
        result: Future resolved with the response of the replay.
        enqueued_at: Unix time of the insertion.
    """

    request: httpx.Request
    call_next: CallNext = field(repr=False)
    result: asyncio.Future = field(repr=False)
    enqueued_at: float = field(default_factory=time.time)


class AuthCoordinator(Stage):
    r"""The ``auth`` pipeline stage.

    Args:
        callbacks: Access to the tokens.
        config: The auth configuration.

    Example:
        ```pycon
        >>> from aresguard.auth import AuthCoordinator, TokenAuthCallbacks
        >>> coordinator = AuthCoordinator(TokenAuthCallbacks("token"))
        >>> coordinator.refresh_state
        <RefreshState.IDLE: 'idle'>

        ```
    """

    name = "auth"

    def __init__(self, callbacks: AuthCallbacks, config: AuthConfig | None = None) -> None:
        self._callbacks = callbacks
        self._config = config or AuthConfig()
        self._session = AuthSession()
        self._state = RefreshState.IDLE
        self._pending: list[PendingAuthRequest] = []
        self._refresh_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(state={self._state.value}, "
            f"queued={len(self._pending)})"
        )

    @property
    def callbacks(self) -> AuthCallbacks:
        return self._callbacks

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def session(self) -> AuthSession:
        return self._session

    @property
    def refresh_state(self) -> RefreshState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state is RefreshState.REFRESHING

    @property
    def queued_requests_count(self) -> int:
        return len(self._pending)

    def update_session(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        if access_token is not None:
            self._session.access_token = access_token
        if refresh_token is not None:
            self._session.refresh_token = refresh_token

    def clear(self) -> None:
        """Stop the refresh cycle and reject the waiting requests."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        self._reject_pending(self._cancellation("Authentication was cleared"))
        self._state = RefreshState.IDLE
        self._session = AuthSession()

    async def handle(self, request: httpx.Request, call_next: CallNext) -> httpx.Response:
        await self._attach_token(request)
        try:
            response = await call_next(request)
        except httpx.HTTPStatusError as exc:
            if not self._should_refresh(request, exc.response):
                raise
            return await self._handle_unauthorized(request, call_next, exc.response)
        if not self._should_refresh(request, response):
            return response
        return await self._handle_unauthorized(request, call_next, response)

    def _should_refresh(self, request: httpx.Request, response: httpx.Response) -> bool:
        return (
            response.status_code == 401
            and self._config.auto_refresh
            and not RequestMetadata.of(request).is_refresh_request
        )

    async def _attach_token(self, request: httpx.Request) -> None:
        try:
            token = await self._callbacks.get_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Failed to read the access token, sending without it: {exc}")
            return
        self._session.access_token = token or None
        if token:
            request.headers[self._config.token_header_name] = f"{self._config.token_prefix}{token}"

    async def _handle_unauthorized(
        self, request: httpx.Request, call_next: CallNext, response: httpx.Response
    ) -> httpx.Response:
        # No await before the enqueue: the state check and the queue
        # insertion must not interleave with another handler.
        if not self._session.access_token:
            logger.debug(f"401 on {request.method} {request.url} without a token, logging out")
            await self._logout_with_cooldown()
            raise AuthError(
                request.method,
                str(request.url),
                "Authentication required - no token available",
                response=response,
            )
        entry = self._enqueue(request, call_next)
        if self._state is RefreshState.REFRESHING:
            logger.debug(
                f"Token refresh in progress, queued {request.method} {request.url} "
                f"({len(self._pending)} waiting)"
            )
        else:
            logger.debug(f"401 on {request.method} {request.url}, starting token refresh")
            self._state = RefreshState.REFRESHING
            self._refresh_task = asyncio.create_task(self._run_refresh_cycle())
        return await entry.result

    def _enqueue(self, request: httpx.Request, call_next: CallNext) -> PendingAuthRequest:
        entry = PendingAuthRequest(request=request, call_next=call_next, result=new_result_future())
        self._pending.append(entry)
        return entry

    async def _run_refresh_cycle(self) -> None:
        try:
            token = await self._refresh()
            if token:
                self._session.access_token = token
                try:
                    await self._callbacks.on_token_refreshed(token)
                except Exception as exc:  # noqa: BLE001
                    logger.warning(f"Error in on_token_refreshed callback: {exc}")
                await self._replay_pending(token)
            else:
                logger.debug("Token refresh failed, rejecting the waiting requests")
                self._reject_pending(self._auth_error)
                await self._logout_with_cooldown()
        except asyncio.CancelledError:
            if self._refresh_task is asyncio.current_task():
                self._reject_pending(self._cancellation("Token refresh was cancelled"))
            raise
        finally:
            if self._refresh_task is asyncio.current_task():
                # Requests queued during the logout callback are rejected
                # in the same step as the return to IDLE.
                self._state = RefreshState.IDLE
                self._refresh_task = None
                self._reject_pending(self._auth_error)

    async def _refresh(self) -> str | None:
        attempts = self._config.max_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                token = await self._callbacks.refresh_token()
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Token refresh attempt {attempt}/{attempts} failed: {exc}")
                token = None
            if token:
                logger.debug(f"Token refresh succeeded on attempt {attempt}/{attempts}")
                return token
            if attempt < attempts:
                await asyncio.sleep(self._config.retry_delay)
        return None

    async def _replay_pending(self, token: str) -> None:
        while self._pending:
            entry = self._pending.pop(0)
            if entry.result.done():
                continue
            try:
                response = await entry.call_next(self._with_token(entry.request, token))
            except Exception as exc:  # noqa: BLE001
                if not entry.result.done():
                    entry.result.set_exception(exc)
                continue
            if not entry.result.done():
                entry.result.set_result(response)

    def _with_token(self, request: httpx.Request, token: str) -> httpx.Request:
        headers = request.headers.copy()
        headers[self._config.token_header_name] = f"{self._config.token_prefix}{token}"
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=request.extensions,
        )

    async def _logout_with_cooldown(self) -> bool:
        now = time.monotonic()
        last = self._session.last_logout_at
        if last is not None and now - last < self._config.logout_cooldown:
            logger.debug("Logout skipped, still in cooldown")
            return False
        self._session.last_logout_at = now
        self._session.access_token = None
        self._session.refresh_token = None
        try:
            await self._callbacks.on_logout()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Error in on_logout callback: {exc}")
        return True

    @staticmethod
    def _auth_error(entry: PendingAuthRequest) -> AuthError:
        return AuthError(entry.request.method, str(entry.request.url))

    @staticmethod
    def _cancellation(message: str) -> Callable[[PendingAuthRequest], BaseException]:
        def _make(entry: PendingAuthRequest) -> BaseException:
            return RequestCancelledError(entry.request.method, str(entry.request.url), message)

        return _make

    def _reject_pending(self, make_error: Callable[[PendingAuthRequest], BaseException]) -> None:
        entries, self._pending = self._pending, []
        for entry in entries:
            if not entry.result.done():
                entry.result.set_exception(make_error(entry))
