"""
Client Credential Token Provider
================================
OAuth2 client-credentials flow against Microsoft Entra ID using httpx.

Tokens are cached per scope and refreshed shortly before they expire.

Usage:
    tokens = ClientCredentialTokenProvider(token_url, client_id, client_secret)
    token = await tokens.get_token("https://graph.microsoft.com/.default")
"""

from dataclasses import dataclass
from typing import Dict, Optional
import asyncio
import logging
import time

import httpx

from services.errors import BackendError, ErrorKind, SERVICE_IDENTITY, error_kind_for_status, error_kind_for_transport

logger = logging.getLogger(__name__)


# Refresh this many seconds before the reported expiry
EXPIRY_MARGIN_SECONDS = 60

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=5.0)


@dataclass
class AccessToken:
    token: str
    expires_at: float

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now < self.expires_at - EXPIRY_MARGIN_SECONDS


class ClientCredentialTokenProvider:
    """Fetches and caches bearer tokens for service-to-service calls."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self._client_secret = client_secret
        self._client = client
        self._owns_client = client is None
        self._cache: Dict[str, AccessToken] = {}
        self._lock = asyncio.Lock()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self._client

    async def get_token(self, scope: str) -> str:
        """Bearer token for ``scope``, from cache when still valid."""
        cached = self._cache.get(scope)
        if cached and cached.is_valid():
            return cached.token

        async with self._lock:
            cached = self._cache.get(scope)
            if cached and cached.is_valid():
                return cached.token

            token = await self._request_token(scope)
            self._cache[scope] = token
            return token.token

    async def _request_token(self, scope: str) -> AccessToken:
        data = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": scope,
            "grant_type": "client_credentials",
        }
        try:
            response = await self._get_client().post(self.token_url, data=data)
        except httpx.HTTPError as e:
            raise BackendError(
                f"Token request failed: {e}",
                kind=error_kind_for_transport(e),
                service=SERVICE_IDENTITY,
            ) from e

        if response.status_code != 200:
            kind = error_kind_for_status(response.status_code)
            if response.status_code in (400, 401):
                kind = ErrorKind.AUTH
            raise BackendError(
                f"Token request rejected ({response.status_code}): {response.text}",
                kind=kind,
                service=SERVICE_IDENTITY,
                status_code=response.status_code,
            )

        payload = response.json()
        expires_in = int(payload.get("expires_in", 3600))
        logger.debug(f"Acquired token for scope {scope} (expires in {expires_in}s)")
        return AccessToken(token=payload["access_token"], expires_at=time.time() + expires_in)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
