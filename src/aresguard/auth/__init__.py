r"""Bearer token authentication with single-flight refresh."""

from __future__ import annotations

__all__ = [
    "AuthCallbacks",
    "AuthConfig",
    "AuthCoordinator",
    "AuthManager",
    "AuthSession",
    "PendingAuthRequest",
    "RefreshState",
    "TokenAuthCallbacks",
]

from aresguard.auth.callbacks import AuthCallbacks, TokenAuthCallbacks
from aresguard.auth.config import AuthConfig
from aresguard.auth.coordinator import (
    AuthCoordinator,
    AuthSession,
    PendingAuthRequest,
    RefreshState,
)
from aresguard.auth.manager import AuthManager
