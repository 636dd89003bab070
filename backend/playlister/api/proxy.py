"""
playlister.api.proxy
~~~~~~~~~~~~~~~~~~~~

Bearer-authenticated provider reads, mounted under ``/api``.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query

from playlister.api.deps import bearer_token, get_proxy
from playlister.services.provider import ProviderProxy

router: APIRouter = APIRouter()


@router.get("/me")
async def me(token: str = Depends(bearer_token), proxy: ProviderProxy = Depends(get_proxy)) -> Any:
    return await proxy.get_profile(token)


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1),
    type: str = Query("track"),
    limit: int = Query(20, ge=1, le=50),
    token: str = Depends(bearer_token),
    proxy: ProviderProxy = Depends(get_proxy),
) -> Any:
    return await proxy.search(token, q, type=type, limit=limit)


@router.get("/playlists")
async def playlists(token: str = Depends(bearer_token), proxy: ProviderProxy = Depends(get_proxy)) -> Any:
    return await proxy.get_playlists(token)


@router.get("/playlists/{playlist_id}/tracks")
async def playlist_tracks(
    playlist_id: str,
    token: str = Depends(bearer_token),
    proxy: ProviderProxy = Depends(get_proxy),
) -> Any:
    return await proxy.get_playlist_tracks(token, playlist_id)
