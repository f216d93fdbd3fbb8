r"""Parameter validation utilities.

This module provides validation functions for the numeric parameters of
the client, cache, auth and network configuration objects so that bad
values are rejected when the configuration is built instead of when a
request is in flight.
"""

from __future__ import annotations

__all__ = [
    "validate_auth_params",
    "validate_cache_params",
    "validate_network_params",
    "validate_timeout",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


def validate_timeout(timeout: float | httpx.Timeout) -> None:
    """Validate timeout parameter.

    Args:
        timeout: Maximum seconds to wait for server responses.
            Must be > 0 if provided as a numeric value.

    Raises:
        ValueError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from aresguard.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: timeout must be > 0, got 0

        ```
    """
    if isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ValueError(msg)


def validate_cache_params(cache_duration: float, max_cache_size: int) -> None:
    """Validate response cache parameters.

    Args:
        cache_duration: Time to live of a cache entry in seconds. Must be > 0.
        max_cache_size: Maximum number of cache entries. Must be > 0.

    Raises:
        ValueError: If a parameter is out of range.

    Example:
        ```pycon
        >>> from aresguard.core.validation import validate_cache_params
        >>> validate_cache_params(cache_duration=300.0, max_cache_size=100)

        ```
    """
    if cache_duration <= 0:
        msg = f"cache_duration must be > 0, got {cache_duration}"
        raise ValueError(msg)
    if max_cache_size <= 0:
        msg = f"max_cache_size must be > 0, got {max_cache_size}"
        raise ValueError(msg)


def validate_auth_params(
    max_retry_attempts: int, retry_delay: float, logout_cooldown: float
) -> None:
    """Validate token refresh parameters.

    Args:
        max_retry_attempts: Number of calls to the refresh callback per
            refresh cycle. Must be >= 1.
        retry_delay: Seconds to wait between refresh attempts. Must be >= 0.
        logout_cooldown: Minimum seconds between two logout callbacks.
            Must be >= 0.

    Raises:
        ValueError: If a parameter is out of range.
    """
    if max_retry_attempts < 1:
        msg = f"max_retry_attempts must be >= 1, got {max_retry_attempts}"
        raise ValueError(msg)
    if retry_delay < 0:
        msg = f"retry_delay must be >= 0, got {retry_delay}"
        raise ValueError(msg)
    if logout_cooldown < 0:
        msg = f"logout_cooldown must be >= 0, got {logout_cooldown}"
        raise ValueError(msg)


def validate_network_params(max_network_retries: int, offline_wait_timeout: float) -> None:
    """Validate network handling parameters.

    Args:
        max_network_retries: Maximum number of retries after a transport
            error. Must be >= 0.
        offline_wait_timeout: Seconds a request waits for the network to
            come back before failing. Must be > 0.

    Raises:
        ValueError: If a parameter is out of range.

    Example:
        ```pycon
        >>> from aresguard.core.validation import validate_network_params
        >>> validate_network_params(max_network_retries=3, offline_wait_timeout=120.0)
        >>> validate_network_params(max_network_retries=-1, offline_wait_timeout=1.0)  # doctest: +SKIP

        ```
    """
    if max_network_retries < 0:
        msg = f"max_network_retries must be >= 0, got {max_network_retries}"
        raise ValueError(msg)
    if offline_wait_timeout <= 0:
        msg = f"offline_wait_timeout must be > 0, got {offline_wait_timeout}"
        raise ValueError(msg)
