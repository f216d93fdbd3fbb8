r"""Token store capabilities used by the auth coordinator.

``AuthCallbacks`` is the interface the coordinator talks to. Subclass it
to plug in any token storage; ``TokenAuthCallbacks`` keeps the tokens in
memory and delegates the refresh call to a user coroutine.
"""

from __future__ import annotations

__all__ = ["AuthCallbacks", "TokenAuthCallbacks"]

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger: logging.Logger = logging.getLogger(__name__)


class AuthCallbacks(ABC):
    r"""Access to the tokens of the authenticated user."""

    @abstractmethod
    async def get_token(self) -> str | None:
        """Return the current access token, or ``None`` if logged out."""

    @abstractmethod
    async def refresh_token(self) -> str | None:
        """Obtain a new access token.

        Returns:
            The new token, or ``None`` (or an empty string) if the
            refresh failed.
        """

    async def on_token_refreshed(self, token: str) -> None:  # noqa: B027
        """Called with the new token after a successful refresh."""

    async def on_logout(self) -> None:  # noqa: B027
        """Called when the session cannot be recovered."""


class TokenAuthCallbacks(AuthCallbacks):
    r"""In-memory token store.

    Args:
        access_token: The initial access token.
        refresh_token: The initial refresh token.
        on_refresh_token: Coroutine function called with the current
            refresh token to obtain a new access token. Without it no
            refresh is possible.
        on_token_refreshed: Optional coroutine function called with the
            new access token, e.g. to persist it.
        on_logout: Optional coroutine function called on logout.

    Example:
        ```pycon
        >>> import asyncio
        >>> from aresguard.auth import TokenAuthCallbacks
        >>> async def refresh(refresh_token):
        ...     return "new-access"
        ...
        >>> callbacks = TokenAuthCallbacks("old-access", "refresh", on_refresh_token=refresh)
        >>> asyncio.run(callbacks.refresh_token())
        'new-access'
        >>> callbacks.current_token
        'new-access'

        ```
    """

    def __init__(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
        *,
        on_refresh_token: Callable[[str | None], Awaitable[str | None]] | None = None,
        on_token_refreshed: Callable[[str], Awaitable[None]] | None = None,
        on_logout: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._on_refresh_token = on_refresh_token
        self._on_token_refreshed = on_token_refreshed
        self._on_logout = on_logout

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(has_token={self.has_token}, can_auto_refresh={self.can_auto_refresh})"

    @property
    def current_token(self) -> str | None:
        return self._access_token

    @property
    def current_refresh_token(self) -> str | None:
        return self._refresh_token

    @property
    def has_token(self) -> bool:
        return bool(self._access_token)

    @property
    def can_auto_refresh(self) -> bool:
        """Whether a refresh can be attempted."""
        return self._on_refresh_token is not None and (
            self._refresh_token is not None or self._access_token is not None
        )

    async def get_token(self) -> str | None:
        return self._access_token

    async def refresh_token(self) -> str | None:
        """Call ``on_refresh_token`` and store the new access token.

        An error raised by ``on_refresh_token`` counts as a failed
        attempt and is logged.
        """
        if not self.can_auto_refresh:
            logger.debug("Token refresh not possible: no refresh hook or no token")
            return None
        try:
            token = await self._on_refresh_token(self._refresh_token)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Token refresh hook failed: {exc}")
            return None
        if not token:
            logger.debug("Token refresh hook returned no token")
            return None
        self._access_token = token
        return token

    async def on_token_refreshed(self, token: str) -> None:
        self._access_token = token
        if self._on_token_refreshed is not None:
            await self._on_token_refreshed(token)

    async def on_logout(self) -> None:
        self.clear_tokens()
        if self._on_logout is not None:
            await self._on_logout()

    def set_tokens(self, access_token: str | None = None, refresh_token: str | None = None) -> None:
        """Replace the tokens given as arguments. ``None`` keeps the current value."""
        if access_token is not None:
            self._access_token = access_token
        if refresh_token is not None:
            self._refresh_token = refresh_token

    def clear_tokens(self) -> None:
        self._access_token = None
        self._refresh_token = None

    def get_status(self) -> dict[str, Any]:
        return {
            "has_token": self.has_token,
            "has_refresh_token": self._refresh_token is not None,
            "can_auto_refresh": self.can_auto_refresh,
        }
