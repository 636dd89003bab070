"""
playlister.api.deps
~~~~~~~~~~~~~~~~~~~

FastAPI dependencies. Services live on ``app.state``.
"""
from typing import Optional

from fastapi import Header, Request

from playlister.core.config import Settings
from playlister.core.errors import MissingBearerToken
from playlister.services.auth import TokenExchangeGateway
from playlister.services.provider import ProviderProxy
from playlister.services.room import RoomRegistry


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> TokenExchangeGateway:
    return request.app.state.gateway


def get_proxy(request: Request) -> ProviderProxy:
    return request.app.state.proxy


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingBearerToken()
    return token.strip()
