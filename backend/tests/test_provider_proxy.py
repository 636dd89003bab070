"""
tests.test_provider_proxy
~~~~~~~~~~~~~~~~~~~~~~~~~

Bearer-forwarding reads against a mocked provider API.
"""
from __future__ import annotations

import httpx
import pytest

from playlister.core.errors import UpstreamError, UpstreamTimeout
from playlister.services.provider import ProviderProxy

BASE_URL = "https://api.example.com/v1"


def _proxy(handler) -> ProviderProxy:
    return ProviderProxy(BASE_URL, timeout=5, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_profile_is_returned_verbatim_with_bearer() -> None:
    seen = []
    profile = {"id": "u1", "display_name": "Alice", "images": [], "product": "premium"}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=profile)

    result = await _proxy(handler).get_profile("tok-1")

    assert result == profile
    assert str(seen[0].url) == f"{BASE_URL}/me"
    assert seen[0].headers["authorization"] == "Bearer tok-1"


@pytest.mark.asyncio
async def test_search_forwards_query_parameters() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"tracks": {"items": []}})

    result = await _proxy(handler).search("tok", "daft punk", type="track,artist", limit=5)

    assert result == {"tracks": {"items": []}}
    params = seen[0].url.params
    assert seen[0].url.path == "/v1/search"
    assert params["q"] == "daft punk"
    assert params["type"] == "track,artist"
    assert params["limit"] == "5"


@pytest.mark.asyncio
async def test_playlist_paths() -> None:
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"items": []})

    proxy = _proxy(handler)
    await proxy.get_playlists("tok")
    await proxy.get_playlist_tracks("tok", "37i9dQZF1DXcBWIGoYBM5M")
    await proxy.get_playlist_tracks("tok", "a/b")

    assert paths == [
        "/v1/me/playlists",
        "/v1/playlists/37i9dQZF1DXcBWIGoYBM5M/tracks",
        "/v1/playlists/a%2Fb/tracks",
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 404, 429, 502])
async def test_provider_status_passes_through(status) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"status": status, "message": "The access token expired"}})

    with pytest.raises(UpstreamError) as exc_info:
        await _proxy(handler).get_profile("expired")

    assert exc_info.value.status_code == status
    assert exc_info.value.message == "The access token expired"


@pytest.mark.asyncio
async def test_error_without_provider_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, content=b"Service Unavailable")

    with pytest.raises(UpstreamError) as exc_info:
        await _proxy(handler).get_playlists("tok")

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "Request failed with status code 503"


@pytest.mark.asyncio
async def test_non_json_success_body_is_500() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not json")

    with pytest.raises(UpstreamError) as exc_info:
        await _proxy(handler).get_profile("tok")

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_is_504() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(UpstreamTimeout) as exc_info:
        await _proxy(handler).get_profile("tok")

    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_unreachable_is_500() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        await _proxy(handler).search("tok", "x")

    assert exc_info.value.status_code == 500
