from __future__ import annotations

from unittest.mock import Mock

import pytest
from coola.equality import objects_are_equal

from aresguard.backoff import ConstantBackoff, ExponentialBackoff
from aresguard.core.config import (
    DEFAULT_CACHE_DURATION,
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_MAX_NETWORK_RETRIES,
    DEFAULT_NETWORK_RETRY_DELAY,
    DEFAULT_OFFLINE_WAIT_TIMEOUT,
    ClientConfig,
    default_encryption_function,
)

##################################
#     Tests for ClientConfig     #
##################################


def test_client_config_defaults() -> None:
    """Test ClientConfig default values."""
    config = ClientConfig()
    assert config.cache_duration == DEFAULT_CACHE_DURATION
    assert config.max_cache_size == DEFAULT_MAX_CACHE_SIZE
    assert not config.handle_network
    assert config.auto_retry_on_network_restore
    assert config.max_network_retries == DEFAULT_MAX_NETWORK_RETRIES
    assert isinstance(config.network_backoff, ConstantBackoff)
    assert config.network_backoff.delay == DEFAULT_NETWORK_RETRY_DELAY
    assert not config.throw_on_offline
    assert config.offline_wait_timeout == DEFAULT_OFFLINE_WAIT_TIMEOUT
    assert config.encryption_function is default_encryption_function
    assert config.on_request is None
    assert config.on_response is None
    assert config.on_failure is None


def test_client_config_custom_values(mock_callback: Mock) -> None:
    """Test ClientConfig with custom values."""
    backoff = ExponentialBackoff(base_delay=1.0)
    config = ClientConfig(
        cache_duration=60.0,
        max_cache_size=10,
        handle_network=True,
        max_network_retries=0,
        network_backoff=backoff,
        on_request=mock_callback,
    )
    assert config.cache_duration == 60.0
    assert config.max_cache_size == 10
    assert config.handle_network
    assert config.max_network_retries == 0
    assert config.network_backoff is backoff
    assert config.on_request is mock_callback


def test_client_config_backoff_not_shared() -> None:
    """Test that each config gets its own default backoff strategy."""
    assert ClientConfig().network_backoff is not ClientConfig().network_backoff


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"cache_duration": 0}, r"cache_duration must be > 0, got 0"),
        ({"max_cache_size": -1}, r"max_cache_size must be > 0, got -1"),
        ({"max_network_retries": -1}, r"max_network_retries must be >= 0, got -1"),
        ({"offline_wait_timeout": 0}, r"offline_wait_timeout must be > 0, got 0"),
    ],
)
def test_client_config_invalid(kwargs: dict, message: str) -> None:
    """Test that invalid parameters are rejected at construction."""
    with pytest.raises(ValueError, match=message):
        ClientConfig(**kwargs)


def test_client_config_merge() -> None:
    """Test that merge applies only the non-None overrides."""
    config = ClientConfig(max_cache_size=5)
    merged = config.merge(handle_network=True, max_cache_size=None, cache_duration=30.0)
    assert merged.handle_network
    assert merged.max_cache_size == 5
    assert merged.cache_duration == 30.0
    assert not config.handle_network


def test_client_config_merge_validates() -> None:
    """Test that merged values are validated."""
    with pytest.raises(ValueError, match=r"max_network_retries must be >= 0"):
        ClientConfig().merge(max_network_retries=-2)


def test_client_config_to_dict() -> None:
    """Test to_dict exposes every parameter."""
    backoff = ConstantBackoff(1.0)
    config = ClientConfig(max_network_retries=5, network_backoff=backoff)
    assert objects_are_equal(
        config.to_dict(),
        {
            "cache_duration": DEFAULT_CACHE_DURATION,
            "max_cache_size": DEFAULT_MAX_CACHE_SIZE,
            "handle_network": False,
            "auto_retry_on_network_restore": True,
            "max_network_retries": 5,
            "network_backoff": backoff,
            "throw_on_offline": False,
            "offline_wait_timeout": DEFAULT_OFFLINE_WAIT_TIMEOUT,
            "encryption_function": default_encryption_function,
            "on_request": None,
            "on_response": None,
            "on_failure": None,
        },
    )


#################################################
#     Tests for default_encryption_function     #
#################################################


def test_default_encryption_function_json() -> None:
    """Test that the default encryption encodes the body as JSON."""
    assert default_encryption_function({"a": 1, "b": [1, 2]}) == '{"a": 1, "b": [1, 2]}'


def test_default_encryption_function_string() -> None:
    """Test that a string body is JSON quoted."""
    assert default_encryption_function("x") == '"x"'
