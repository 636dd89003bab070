"""
playlister.services.provider
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Pass-through client for the provider's web API.
"""
from typing import Any, Optional
from urllib.parse import quote

import httpx

from playlister.core.errors import UpstreamError, UpstreamTimeout
from playlister.core.logging import get_logger

logger = get_logger(__name__)


class ProviderProxy:
    """Forwards bearer-authenticated reads to the provider's web API.

    No caching and no retries: a 401 goes straight back to the client, which
    refreshes its token and tries again.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_profile(self, token: str) -> Any:
        return await self._get(token, "/me")

    async def search(self, token: str, q: str, type: str = "track", limit: int = 20) -> Any:
        return await self._get(token, "/search", params={"q": q, "type": type, "limit": limit})

    async def get_playlists(self, token: str) -> Any:
        return await self._get(token, "/me/playlists")

    async def get_playlist_tracks(self, token: str, playlist_id: str) -> Any:
        return await self._get(token, f"/playlists/{quote(playlist_id, safe='')}/tracks")

    async def _get(self, token: str, path: str, params: Optional[dict] = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.TimeoutException as e:
            logger.error(f"Provider timed out on {path}: {e}")
            raise UpstreamTimeout() from e
        except httpx.HTTPError as e:
            logger.error(f"Provider request {path} failed: {e}")
            raise UpstreamError(500, "Provider unreachable") from e

        if response.is_error:
            logger.warning(f"Provider answered {response.status_code} on {path}")
            raise UpstreamError(response.status_code, _error_message(response))

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Provider sent a non-JSON body on {path}")
            raise UpstreamError(500, "Malformed provider response") from e


def _error_message(response: httpx.Response) -> str:
    # Spotify errors look like {"error": {"status": 401, "message": "..."}}
    try:
        body = response.json()
    except ValueError:
        return f"Request failed with status code {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return f"Request failed with status code {response.status_code}"
