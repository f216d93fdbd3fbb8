r"""Unit tests for package initialization and metadata."""

from __future__ import annotations

import pytest

import aresguard


def test_package_version_is_string() -> None:
    """Test that __version__ is a string."""
    assert isinstance(aresguard.__version__, str)


def test_package_version_format() -> None:
    """Test that __version__ follows semantic versioning."""
    assert "." in aresguard.__version__


def test_all_exports_defined() -> None:
    """Test that all items in __all__ are defined in the module."""
    for name in aresguard.__all__:
        assert hasattr(aresguard, name), f"{name} is in __all__ but not defined in module"


def test_all_exports_sorted() -> None:
    assert aresguard.__all__ == sorted(aresguard.__all__)


@pytest.mark.parametrize(
    "name",
    [
        "AsyncGuardClient",
        "ClientConfig",
        "ConnectivityMonitor",
        "ResponseCache",
        "TokenAuthCallbacks",
    ],
)
def test_main_components_exported(name: str) -> None:
    assert name in aresguard.__all__
