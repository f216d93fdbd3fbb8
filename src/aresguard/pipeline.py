r"""Explicit ordered request pipeline.

A pipeline is a fixed list of named stages in front of a transport
call. Each stage receives the request and a ``call_next`` coroutine
function that runs the rest of the pipeline, so a stage can change the
request, short-circuit it, inspect the response or call the rest of
the pipeline more than once. The client builds the pipeline once with
the stages ``network``, ``auth`` and ``logging``.
"""

from __future__ import annotations

__all__ = ["CallNext", "ObserverStage", "Pipeline", "Stage"]

import functools
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import httpx

from aresguard.callbacks import FailureInfo, RequestInfo, ResponseInfo, invoke_hook
from aresguard.utils.structured_logging import get_request_id, log_structured, new_request_id

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aresguard.core.config import ClientConfig

logger: logging.Logger = logging.getLogger(__name__)

CallNext = Callable[[httpx.Request], Awaitable[httpx.Response]]


class Stage(ABC):
    r"""One step of a ``Pipeline``.

    Subclasses set ``name``, which must be unique within a pipeline.
    """

    name: str = "stage"

    @abstractmethod
    async def handle(
        self,
        request: httpx.Request,
        call_next: CallNext,
    ) -> httpx.Response:
        """Process a request.

        Args:
            request: The outgoing request.
            call_next: Coroutine function running the next stages and
                the transport.

        Returns:
            The response returned to the previous stage.
        """


class Pipeline:
    r"""Ordered stages in front of a transport call.

    Args:
        transport: Coroutine function sending a request, typically
            ``httpx.AsyncClient.send``.
        stages: The stages, outermost first.

    Raises:
        ValueError: If two stages have the same name.

    Example:
        ```pycon
        >>> import asyncio
        >>> import httpx
        >>> from aresguard.pipeline import Pipeline
        >>> async def transport(request):
        ...     return httpx.Response(204, request=request)
        ...
        >>> pipeline = Pipeline(transport)
        >>> asyncio.run(pipeline.send(httpx.Request("GET", "https://example.com"))).status_code
        204

        ```
    """

    def __init__(
        self,
        transport: Callable[[httpx.Request], Awaitable[httpx.Response]],
        stages: Sequence[Stage] = (),
    ) -> None:
        names = [stage.name for stage in stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            msg = f"stage names must be unique, got duplicates {duplicates}"
            raise ValueError(msg)
        self._transport = transport
        self._stages = tuple(stages)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(stages={self.names})"

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def get(self, name: str) -> Stage:
        """Return the stage with the given name.

        Raises:
            KeyError: If no stage has this name.
        """
        for stage in self._stages:
            if stage.name == name:
                return stage
        msg = f"no stage named {name!r} in {self.names}"
        raise KeyError(msg)

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Run a request through every stage and the transport."""
        return await self._dispatch(0, request)

    async def _dispatch(self, index: int, request: httpx.Request) -> httpx.Response:
        if index == len(self._stages):
            return await self._transport(request)
        stage = self._stages[index]
        return await stage.handle(request, functools.partial(self._dispatch, index + 1))


class ObserverStage(Stage):
    r"""Stage logging every transport call and invoking the observer hooks.

    Placed right before the transport, it sees every attempt, including
    the replays made by the auth and network stages.

    Args:
        config: The client configuration holding the hooks.
    """

    name = "logging"

    def __init__(self, config: ClientConfig) -> None:
        self._config = config

    async def handle(
        self,
        request: httpx.Request,
        call_next: CallNext,
    ) -> httpx.Response:
        url = str(request.url)
        request_id = get_request_id() or new_request_id()
        invoke_hook(
            self._config.on_request,
            RequestInfo(url=url, method=request.method, request_id=request_id),
        )
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = time.monotonic() - start
            log_structured(
                logger,
                logging.DEBUG,
                f"{request.method} request to {url} failed: {exc}",
                request_id=request_id,
                method=request.method,
                url=url,
                error=type(exc).__name__,
                duration_ms=round(duration * 1000, 3),
            )
            invoke_hook(
                self._config.on_failure,
                FailureInfo(
                    url=url,
                    method=request.method,
                    request_id=request_id,
                    error=exc,
                    duration=duration,
                ),
            )
            raise
        duration = time.monotonic() - start
        log_structured(
            logger,
            logging.DEBUG,
            f"{request.method} request to {url} returned {response.status_code}",
            request_id=request_id,
            method=request.method,
            url=url,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 3),
        )
        invoke_hook(
            self._config.on_response,
            ResponseInfo(
                url=url,
                method=request.method,
                request_id=request_id,
                status_code=response.status_code,
                response=response,
                duration=duration,
            ),
        )
        return response
