r"""Configuration of the bearer token authentication."""

from __future__ import annotations

__all__ = [
    "DEFAULT_LOGOUT_COOLDOWN",
    "DEFAULT_MAX_RETRY_ATTEMPTS",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_TOKEN_HEADER_NAME",
    "DEFAULT_TOKEN_PREFIX",
    "AuthConfig",
]

from dataclasses import dataclass, replace
from typing import Any

from aresguard.core.validation import validate_auth_params

# Header carrying the access token
DEFAULT_TOKEN_HEADER_NAME = "Authorization"

# Prefix written before the access token in the header value
DEFAULT_TOKEN_PREFIX = "Bearer "

# Calls of refresh_token() in one refresh cycle
DEFAULT_MAX_RETRY_ATTEMPTS = 1

# Delay between two refresh attempts, in seconds
DEFAULT_RETRY_DELAY = 0.5

# Minimum time between two logout callbacks, in seconds
DEFAULT_LOGOUT_COOLDOWN = 5.0


@dataclass(frozen=True)
class AuthConfig:
    """Configuration of an ``AuthCoordinator``.

    Args:
        token_header_name: The header carrying the access token.
        token_prefix: The prefix of the header value.
        max_retry_attempts: Maximum number of ``refresh_token()`` calls in
            one refresh cycle. Must be >= 1.
        retry_delay: Seconds between two refresh attempts. Must be >= 0.
        auto_refresh: Whether a 401 triggers a token refresh. When
            disabled, a 401 response is returned to the caller as is.
        logout_cooldown: Minimum number of seconds between two logout
            callbacks. Must be >= 0.

    Example:
        ```pycon
        >>> from aresguard.auth import AuthConfig
        >>> config = AuthConfig(max_retry_attempts=2)
        >>> config.token_header_name, config.token_prefix
        ('Authorization', 'Bearer ')

        ```
    """

    token_header_name: str = DEFAULT_TOKEN_HEADER_NAME
    token_prefix: str = DEFAULT_TOKEN_PREFIX
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    auto_refresh: bool = True
    logout_cooldown: float = DEFAULT_LOGOUT_COOLDOWN

    def __post_init__(self) -> None:
        validate_auth_params(
            max_retry_attempts=self.max_retry_attempts,
            retry_delay=self.retry_delay,
            logout_cooldown=self.logout_cooldown,
        )

    def merge(self, **overrides: Any) -> AuthConfig:
        """Create a new config with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_header_name": self.token_header_name,
            "token_prefix": self.token_prefix,
            "max_retry_attempts": self.max_retry_attempts,
            "retry_delay": self.retry_delay,
            "auto_refresh": self.auto_refresh,
            "logout_cooldown": self.logout_cooldown,
        }
