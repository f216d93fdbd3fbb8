r"""Auth stage of the client pipeline."""

from __future__ import annotations

__all__ = ["AuthManager"]

import logging
from typing import TYPE_CHECKING, Any

from aresguard.auth.callbacks import TokenAuthCallbacks
from aresguard.auth.config import AuthConfig
from aresguard.auth.coordinator import AuthCoordinator
from aresguard.pipeline import CallNext, Stage

if TYPE_CHECKING:
    import httpx

    from aresguard.auth.callbacks import AuthCallbacks

logger: logging.Logger = logging.getLogger(__name__)


class AuthManager(Stage):
    r"""Holds the optional ``AuthCoordinator`` of a client.

    The pipeline of a client is built once, so the ``auth`` stage is
    always present. Until ``configure()`` is called it sends requests
    unchanged.

    Example:
        ```pycon
        >>> from aresguard.auth import AuthManager, TokenAuthCallbacks
        >>> manager = AuthManager()
        >>> manager.get_status()
        {'configured': False}
        >>> manager.configure(TokenAuthCallbacks("token"))
        >>> manager.is_configured
        True

        ```
    """

    name = "auth"

    def __init__(self) -> None:
        self._coordinator: AuthCoordinator | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(configured={self.is_configured})"

    @property
    def is_configured(self) -> bool:
        return self._coordinator is not None

    @property
    def coordinator(self) -> AuthCoordinator | None:
        return self._coordinator

    @property
    def callbacks(self) -> AuthCallbacks | None:
        return None if self._coordinator is None else self._coordinator.callbacks

    @property
    def config(self) -> AuthConfig | None:
        return None if self._coordinator is None else self._coordinator.config

    def configure(self, callbacks: AuthCallbacks, config: AuthConfig | None = None) -> None:
        """Enable authentication, replacing any previous configuration.

        Args:
            callbacks: Access to the tokens.
            config: The auth configuration. Defaults to ``AuthConfig()``.
        """
        if self._coordinator is not None:
            self._coordinator.clear()
        self._coordinator = AuthCoordinator(callbacks, config or AuthConfig())
        logger.debug(f"Authentication configured: {self._coordinator.config.to_dict()}")

    def clear(self) -> None:
        """Disable authentication and reject requests waiting for a refresh."""
        if self._coordinator is not None:
            self._coordinator.clear()
        self._coordinator = None
        logger.debug("Authentication cleared")

    def update_tokens(
        self, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        """Replace the stored tokens.

        The tokens are written to the callbacks when they are a
        ``TokenAuthCallbacks``. Other callbacks own their storage and only
        the coordinator session is updated.
        """
        if self._coordinator is None:
            logger.debug("update_tokens called before configure, ignored")
            return
        callbacks = self._coordinator.callbacks
        if isinstance(callbacks, TokenAuthCallbacks):
            callbacks.set_tokens(access_token=access_token, refresh_token=refresh_token)
        self._coordinator.update_session(access_token=access_token, refresh_token=refresh_token)

    async def is_authenticated(self) -> bool:
        """Return whether an access token is currently available."""
        if self._coordinator is None:
            return False
        try:
            token = await self._coordinator.callbacks.get_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Failed to read the access token: {exc}")
            return False
        return bool(token)

    def get_status(self) -> dict[str, Any]:
        if self._coordinator is None:
            return {"configured": False}
        status: dict[str, Any] = {
            "configured": True,
            "is_refreshing": self._coordinator.is_refreshing,
            "queued_requests": self._coordinator.queued_requests_count,
            "config": self._coordinator.config.to_dict(),
        }
        callbacks = self._coordinator.callbacks
        if isinstance(callbacks, TokenAuthCallbacks):
            status["tokens"] = callbacks.get_status()
        return status

    async def handle(self, request: httpx.Request, call_next: CallNext) -> httpx.Response:
        if self._coordinator is None:
            return await call_next(request)
        return await self._coordinator.handle(request, call_next)
