from __future__ import annotations

import httpx
import pytest

from aresguard.cancel import CancelToken
from aresguard.core.request import METADATA_EXTENSION, RequestMetadata, RequestSpec

#####################################
#     Tests for RequestMetadata     #
#####################################


def test_request_metadata_defaults() -> None:
    metadata = RequestMetadata()
    assert not metadata.handle_network
    assert metadata.auto_retry
    assert metadata.max_retries == 3
    assert not metadata.throw_on_offline
    assert not metadata.is_refresh_request


def test_request_metadata_of_request_without_metadata(request_obj: httpx.Request) -> None:
    """Test that a request built outside the client gets the defaults."""
    assert RequestMetadata.of(request_obj) == RequestMetadata()


def test_request_metadata_round_trip_through_extensions() -> None:
    """Test that the metadata attached to a request is read back."""
    metadata = RequestMetadata(handle_network=True, is_refresh_request=True)
    request = httpx.Request("GET", "https://api.example.com", extensions=metadata.to_extensions())
    assert request.extensions[METADATA_EXTENSION] is metadata
    assert RequestMetadata.of(request) is metadata


def test_request_metadata_of_ignores_foreign_value() -> None:
    """Test that a foreign value under the extension key is ignored."""
    request = httpx.Request("GET", "https://api.example.com", extensions={METADATA_EXTENSION: "x"})
    assert RequestMetadata.of(request) == RequestMetadata()


def test_request_metadata_frozen() -> None:
    with pytest.raises(AttributeError):
        RequestMetadata().handle_network = True  # type: ignore[misc]


#################################
#     Tests for RequestSpec     #
#################################


def test_request_spec_defaults() -> None:
    spec = RequestSpec(method="GET", url="/posts")
    assert spec.is_get
    assert spec.body is None
    assert spec.extensions == {}
    assert spec.metadata == RequestMetadata()
    assert spec.cancel_token is None
    assert not spec.use_cache
    assert not spec.queue_when_offline


def test_request_spec_is_get_false_for_post() -> None:
    assert not RequestSpec(method="POST", url="/posts").is_get


def test_request_spec_body_prefers_json() -> None:
    """Test that body returns the JSON body first, then form data, then
    raw content."""
    assert RequestSpec(method="POST", url="/", json={"a": 1}, data={"b": 2}).body == {"a": 1}
    assert RequestSpec(method="POST", url="/", data={"b": 2}, content=b"c").body == {"b": 2}
    assert RequestSpec(method="POST", url="/", content=b"c").body == b"c"


def test_request_spec_keeps_cancel_token() -> None:
    token = CancelToken()
    assert RequestSpec(method="GET", url="/", cancel_token=token).cancel_token is token
