"""
playlister.api.auth
~~~~~~~~~~~~~~~~~~~

Authorization endpoints:
  - ``GET  /login``    -> 302 to the provider's authorize page
  - ``GET  /callback`` -> provider redirect target; tokens as JSON, or a
    redirect to the frontend when ``FRONTEND_URL`` is set
  - ``POST /callback`` -> ``{code, state}`` exchanged for tokens
  - ``POST /refresh``  -> ``{refresh_token}`` exchanged for a fresh access token
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from playlister.api.deps import get_gateway, get_settings_dep
from playlister.core.config import Settings
from playlister.core.errors import InvalidState, UpstreamExchangeFailed
from playlister.core.logging import get_logger
from playlister.services.auth import TokenExchangeGateway

logger = get_logger(__name__)

router: APIRouter = APIRouter()


class CallbackRequest(BaseModel):
    code: str
    state: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _frontend_redirect(settings: Settings, params: dict) -> RedirectResponse:
    base = settings.FRONTEND_URL.rstrip("/")
    return RedirectResponse(f"{base}{settings.FRONTEND_CALLBACK_PATH}?{urlencode(params)}", status_code=302)


@router.get("/login")
async def login(gateway: TokenExchangeGateway = Depends(get_gateway)) -> RedirectResponse:
    return RedirectResponse(gateway.begin_authorization(), status_code=302)


@router.get("/callback")
async def callback_redirect(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    gateway: TokenExchangeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings_dep),
):
    if error:
        logger.info(f"Authorization declined by provider: {error}")
        if settings.FRONTEND_URL:
            return _frontend_redirect(settings, {"error": error})
        raise UpstreamExchangeFailed(f"Authorization failed: {error}")
    if not code or not state:
        raise InvalidState()

    tokens = await gateway.complete_authorization(code, state)
    if settings.FRONTEND_URL:
        params = {"access_token": tokens.get("access_token", "")}
        if tokens.get("refresh_token"):
            params["refresh_token"] = tokens["refresh_token"]
        return _frontend_redirect(settings, params)
    return tokens


@router.post("/callback")
async def callback(body: CallbackRequest, gateway: TokenExchangeGateway = Depends(get_gateway)) -> dict:
    return await gateway.complete_authorization(body.code, body.state)


@router.post("/refresh")
async def refresh(body: RefreshRequest, gateway: TokenExchangeGateway = Depends(get_gateway)) -> dict:
    return await gateway.refresh(body.refresh_token)
