r"""Core configuration, validation and request descriptors.

This module contains the pieces shared by the client and every
coordinator: the configuration dataclass and its defaults, parameter
validation, and the request descriptor and metadata types.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_CACHE_DURATION",
    "DEFAULT_MAX_CACHE_SIZE",
    "DEFAULT_TIMEOUT",
    "METADATA_EXTENSION",
    "ClientConfig",
    "RequestMetadata",
    "RequestSpec",
    "validate_auth_params",
    "validate_cache_params",
    "validate_network_params",
    "validate_timeout",
]

from aresguard.core.config import (
    DEFAULT_CACHE_DURATION,
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_TIMEOUT,
    ClientConfig,
)
from aresguard.core.request import METADATA_EXTENSION, RequestMetadata, RequestSpec
from aresguard.core.validation import (
    validate_auth_params,
    validate_cache_params,
    validate_network_params,
    validate_timeout,
)
