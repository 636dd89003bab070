"""
playlister.services.auth
~~~~~~~~~~~~~~~~~~~~~~~~

Token exchange gateway for the provider's authorization-code + PKCE flow.
"""
import base64
import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from playlister.core.errors import InvalidState, UpstreamExchangeFailed, UpstreamTimeout
from playlister.core.logging import get_logger

logger = get_logger(__name__)


def base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def code_challenge(verifier: str) -> str:
    """S256 challenge: unpadded base64url of the verifier's SHA-256."""
    return base64url(hashlib.sha256(verifier.encode("ascii")).digest())


@dataclass
class PendingAuthorization:
    verifier: str
    created_at: float


class TokenExchangeGateway:
    """Authorization-code + PKCE flow against the provider's accounts service.

    Verifiers wait in memory keyed by the one-time ``state`` token until the
    callback consumes them, or until they are older than ``state_ttl``.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: str,
        authorize_url: str,
        token_url: str,
        timeout: float = 10.0,
        state_ttl: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.timeout = timeout
        self.state_ttl = state_ttl
        self.clock = clock
        self._transport = transport
        self._pending: Dict[str, PendingAuthorization] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def begin_authorization(self) -> str:
        self._prune()
        state = secrets.token_urlsafe(16)
        verifier = secrets.token_urlsafe(64)
        self._pending[state] = PendingAuthorization(verifier=verifier, created_at=self.clock())

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": self.scopes,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "code_challenge_method": "S256",
            "code_challenge": code_challenge(verifier),
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def complete_authorization(self, code: str, state: str) -> dict:
        pending = self._pending.pop(state, None) if state else None
        if pending is None or self._expired(pending):
            logger.warning("Callback with unknown or expired state")
            raise InvalidState()

        return await self._request_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": pending.verifier,
        }, "Failed to exchange code for token")

    async def refresh(self, refresh_token: str) -> dict:
        return await self._request_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
        }, "Failed to refresh token")

    async def _request_token(self, form: dict, failure_message: str) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.token_url,
                    data=form,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TimeoutException as e:
            logger.error(f"Token endpoint timed out: {e}")
            raise UpstreamTimeout() from e
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint unreachable: {e}")
            raise UpstreamExchangeFailed(failure_message) from e

        if response.is_error:
            # Provider details stay in the log, the caller gets a generic failure
            logger.error(f"Token {form['grant_type']} rejected ({response.status_code}): {response.text}")
            raise UpstreamExchangeFailed(failure_message)

        try:
            return response.json()
        except ValueError as e:
            logger.error("Token endpoint returned a non-JSON body")
            raise UpstreamExchangeFailed(failure_message) from e

    def _expired(self, pending: PendingAuthorization) -> bool:
        return self.clock() - pending.created_at > self.state_ttl

    def _prune(self) -> None:
        expired = [s for s, p in self._pending.items() if self._expired(p)]
        for state in expired:
            del self._pending[state]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired authorization states")
