from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest

from aresguard.auth import AuthCallbacks, TokenAuthCallbacks

###################################
#     Tests for AuthCallbacks     #
###################################


class StaticCallbacks(AuthCallbacks):
    async def get_token(self) -> str | None:
        return "static"

    async def refresh_token(self) -> str | None:
        return None


@pytest.mark.asyncio
async def test_auth_callbacks_optional_hooks_do_nothing() -> None:
    callbacks = StaticCallbacks()
    assert await callbacks.on_token_refreshed("new") is None
    assert await callbacks.on_logout() is None


def test_auth_callbacks_abstract() -> None:
    with pytest.raises(TypeError):
        AuthCallbacks()  # type: ignore[abstract]


########################################
#     Tests for TokenAuthCallbacks     #
########################################


@pytest.mark.asyncio
async def test_token_auth_callbacks_get_token() -> None:
    callbacks = TokenAuthCallbacks("access", "refresh")
    assert await callbacks.get_token() == "access"
    assert callbacks.current_token == "access"
    assert callbacks.current_refresh_token == "refresh"
    assert callbacks.has_token


def test_token_auth_callbacks_can_auto_refresh() -> None:
    hook = AsyncMock(return_value="new")
    assert TokenAuthCallbacks("access", on_refresh_token=hook).can_auto_refresh
    assert TokenAuthCallbacks(refresh_token="refresh", on_refresh_token=hook).can_auto_refresh
    assert not TokenAuthCallbacks(on_refresh_token=hook).can_auto_refresh
    assert not TokenAuthCallbacks("access", "refresh").can_auto_refresh


@pytest.mark.asyncio
async def test_token_auth_callbacks_refresh_token() -> None:
    """Test that the hook gets the refresh token and the new access token
    is stored."""
    hook = AsyncMock(return_value="new-access")
    callbacks = TokenAuthCallbacks("old-access", "refresh", on_refresh_token=hook)
    assert await callbacks.refresh_token() == "new-access"
    hook.assert_awaited_once_with("refresh")
    assert callbacks.current_token == "new-access"


@pytest.mark.asyncio
async def test_token_auth_callbacks_refresh_without_hook() -> None:
    callbacks = TokenAuthCallbacks("access", "refresh")
    assert await callbacks.refresh_token() is None
    assert callbacks.current_token == "access"


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [None, ""])
async def test_token_auth_callbacks_refresh_empty_result(result: str | None) -> None:
    callbacks = TokenAuthCallbacks(
        "access", "refresh", on_refresh_token=AsyncMock(return_value=result)
    )
    assert await callbacks.refresh_token() is None
    assert callbacks.current_token == "access"


@pytest.mark.asyncio
async def test_token_auth_callbacks_refresh_hook_error(caplog: pytest.LogCaptureFixture) -> None:
    """Test that an error of the refresh hook is a failed refresh."""
    hook = AsyncMock(side_effect=RuntimeError("refresh endpoint down"))
    callbacks = TokenAuthCallbacks("access", "refresh", on_refresh_token=hook)
    with caplog.at_level(logging.WARNING):
        assert await callbacks.refresh_token() is None
    assert "Token refresh hook failed: refresh endpoint down" in caplog.text


@pytest.mark.asyncio
async def test_token_auth_callbacks_on_token_refreshed() -> None:
    hook = AsyncMock()
    callbacks = TokenAuthCallbacks("access", on_token_refreshed=hook)
    await callbacks.on_token_refreshed("new")
    assert callbacks.current_token == "new"
    hook.assert_awaited_once_with("new")


@pytest.mark.asyncio
async def test_token_auth_callbacks_on_logout() -> None:
    hook = AsyncMock()
    callbacks = TokenAuthCallbacks("access", "refresh", on_logout=hook)
    await callbacks.on_logout()
    assert callbacks.current_token is None
    assert callbacks.current_refresh_token is None
    hook.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_token_auth_callbacks_on_logout_hook_error_propagates() -> None:
    callbacks = TokenAuthCallbacks("access", on_logout=AsyncMock(side_effect=ValueError("x")))
    with pytest.raises(ValueError, match=r"x"):
        await callbacks.on_logout()
    assert not callbacks.has_token


def test_token_auth_callbacks_set_tokens() -> None:
    callbacks = TokenAuthCallbacks("access", "refresh")
    callbacks.set_tokens(access_token="new")
    assert callbacks.current_token == "new"
    assert callbacks.current_refresh_token == "refresh"
    callbacks.set_tokens(refresh_token="new-refresh")
    assert callbacks.current_refresh_token == "new-refresh"


def test_token_auth_callbacks_clear_tokens() -> None:
    callbacks = TokenAuthCallbacks("access", "refresh")
    callbacks.clear_tokens()
    assert not callbacks.has_token
    assert callbacks.current_refresh_token is None


def test_token_auth_callbacks_get_status() -> None:
    callbacks = TokenAuthCallbacks("access", on_refresh_token=AsyncMock())
    assert callbacks.get_status() == {
        "has_token": True,
        "has_refresh_token": False,
        "can_auto_refresh": True,
    }


def test_token_auth_callbacks_repr() -> None:
    assert (
        repr(TokenAuthCallbacks("access"))
        == "TokenAuthCallbacks(has_token=True, can_auto_refresh=False)"
    )
