from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import httpx
import pytest

from aresguard.utils.structured_logging import clear_request_id

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock callback function for testing callbacks.

    This fixture provides a simple Mock object that can be used to test
    hook functionality across different test scenarios.

    Returns:
        A Mock object that can be used as a callback function.

    Example:
        >>> def test_callback(mock_callback):
        ...     config = ClientConfig(on_request=mock_callback)
        ...     mock_callback.assert_called_once()
    """
    return Mock()


@pytest.fixture
def mock_net_if_stats() -> Generator[Mock, None, None]:
    """Patch psutil.net_if_stats as seen by the interface source."""
    with patch("aresguard.network.interfaces.psutil.net_if_stats") as mock:
        yield mock


@pytest.fixture
def request_obj() -> httpx.Request:
    """Create a GET request for testing."""
    return httpx.Request("GET", "https://api.example.com/posts")


@pytest.fixture(autouse=True)
def _reset_request_id() -> Generator[None, None, None]:
    """Make sure no request id leaks from one test to another."""
    yield
    clear_request_id()
