r"""Configuration dataclass and defaults for AsyncGuardClient.

This module provides the default constants and the dataclass-based
configuration object that controls caching, network handling, body
encryption and observer hooks of an ``AsyncGuardClient``.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_CACHE_DURATION",
    "DEFAULT_MAX_CACHE_SIZE",
    "DEFAULT_MAX_NETWORK_RETRIES",
    "DEFAULT_NETWORK_RETRY_DELAY",
    "DEFAULT_OFFLINE_WAIT_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_PROBE_ENDPOINTS",
    "DEFAULT_PROBE_TIMEOUT",
    "DEFAULT_TIMEOUT",
    "ClientConfig",
    "default_encryption_function",
]

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from aresguard.backoff import BackoffStrategy, ConstantBackoff
from aresguard.core.validation import validate_cache_params, validate_network_params

if TYPE_CHECKING:
    from collections.abc import Callable

    from aresguard.callbacks import FailureInfo, RequestInfo, ResponseInfo


# Default timeout in seconds for HTTP requests
DEFAULT_TIMEOUT = 10.0

# Time to live of a cached GET payload, in seconds
DEFAULT_CACHE_DURATION = 300.0

# Maximum number of cached payloads. The oldest entries are evicted first.
DEFAULT_MAX_CACHE_SIZE = 100

# Retries after a transport error once the network is back
DEFAULT_MAX_NETWORK_RETRIES = 3

# Delay before each of these retries, in seconds
DEFAULT_NETWORK_RETRY_DELAY = 2.0

# How long a request waits for the network inside the pipeline, in seconds
DEFAULT_OFFLINE_WAIT_TIMEOUT = 120.0

# Endpoints probed in order to confirm that an interface reaches the internet
DEFAULT_PROBE_ENDPOINTS = (
    "https://www.google.com",
    "https://www.cloudflare.com",
    "https://httpbin.org/status/200",
)

# Timeout of a single reachability probe, in seconds
DEFAULT_PROBE_TIMEOUT = 10.0

# How often the OS interface state is polled, in seconds
DEFAULT_POLL_INTERVAL = 5.0


def default_encryption_function(body: Any) -> str:
    """Encode a request body as JSON text.

    Args:
        body: The JSON-serializable body.

    Returns:
        The JSON document.

    Example:
        ```pycon
        >>> from aresguard.core.config import default_encryption_function
        >>> default_encryption_function({"a": 1})
        '{"a": 1}'

        ```
    """
    return json.dumps(body)


@dataclass
class ClientConfig:
    """Configuration for AsyncGuardClient behavior.

    Note:
        The timeout and base URL are NOT included in this config as they
        are used directly by ``httpx.AsyncClient``.

    Args:
        cache_duration: Time to live of cached GET payloads in seconds. Must be > 0.
        max_cache_size: Maximum number of cached payloads. Must be > 0.
        handle_network: Whether requests are checked against the connectivity
            monitor (offline queuing, waiting and network retries).
        auto_retry_on_network_restore: Whether a request failing with a
            transport error is retried once the network is back.
        max_network_retries: Maximum number of these retries. Must be >= 0.
        network_backoff: Strategy giving the delay before each network retry.
            Defaults to a 2 second constant delay.
        throw_on_offline: Whether an offline request raises
            ``NetworkOfflineError`` instead of waiting or returning the
            offline sentinel.
        offline_wait_timeout: Seconds a request waits for the network in the
            pipeline before raising ``NetworkOfflineError``. Must be > 0.
        encryption_function: Function applied to the body when a request is
            sent with ``encrypt_body=True``. Defaults to JSON encoding.
        on_request: Optional hook called before each transport call.
        on_response: Optional hook called after each transport call that
            returned a response.
        on_failure: Optional hook called when a transport call raised.

    Example:
        ```pycon
        >>> from aresguard.core.config import ClientConfig
        >>> config = ClientConfig()
        >>> config.max_cache_size
        100
        >>> merged = config.merge(handle_network=True, max_cache_size=None)
        >>> merged.handle_network, merged.max_cache_size
        (True, 100)

        ```
    """

    cache_duration: float = DEFAULT_CACHE_DURATION
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    handle_network: bool = False
    auto_retry_on_network_restore: bool = True
    max_network_retries: int = DEFAULT_MAX_NETWORK_RETRIES
    network_backoff: BackoffStrategy = field(
        default_factory=lambda: ConstantBackoff(DEFAULT_NETWORK_RETRY_DELAY)
    )
    throw_on_offline: bool = False
    offline_wait_timeout: float = DEFAULT_OFFLINE_WAIT_TIMEOUT
    encryption_function: Callable[[Any], str] = default_encryption_function
    on_request: Callable[[RequestInfo], None] | None = None
    on_response: Callable[[ResponseInfo], None] | None = None
    on_failure: Callable[[FailureInfo], None] | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters after initialization.

        Raises:
            ValueError: If any parameter fails validation.
        """
        validate_cache_params(
            cache_duration=self.cache_duration, max_cache_size=self.max_cache_size
        )
        validate_network_params(
            max_network_retries=self.max_network_retries,
            offline_wait_timeout=self.offline_wait_timeout,
        )

    def merge(self, **overrides: Any) -> ClientConfig:
        """Create a new config with specified parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new ClientConfig instance with overrides applied.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary format.

        Returns:
            Dictionary with the configuration parameters.

        Example:
            ```pycon
            >>> from aresguard.core.config import ClientConfig
            >>> ClientConfig(max_network_retries=5).to_dict()["max_network_retries"]
            5

            ```
        """
        return {
            "cache_duration": self.cache_duration,
            "max_cache_size": self.max_cache_size,
            "handle_network": self.handle_network,
            "auto_retry_on_network_restore": self.auto_retry_on_network_restore,
            "max_network_retries": self.max_network_retries,
            "network_backoff": self.network_backoff,
            "throw_on_offline": self.throw_on_offline,
            "offline_wait_timeout": self.offline_wait_timeout,
            "encryption_function": self.encryption_function,
            "on_request": self.on_request,
            "on_response": self.on_response,
            "on_failure": self.on_failure,
        }
