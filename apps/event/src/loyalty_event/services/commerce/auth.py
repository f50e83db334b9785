"""OAuth client-credentials token handling for the commerce platform API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx
from loguru import logger

from loyalty_event.core.settings import Settings

from .errors import CommerceAuthError


@dataclass(slots=True)
class AccessToken:
    """Bearer token issued by the platform auth server."""

    value: str
    expires_at: datetime

    def is_valid(self, now: datetime, margin: timedelta) -> bool:
        return now + margin < self.expires_at


class TokenSource(Protocol):
    """Protocol for implementations capable of issuing access tokens."""

    async def fetch(self) -> AccessToken:
        """Return a freshly issued token or raise ``CommerceAuthError``."""


class ClientCredentialsTokenSource(TokenSource):
    """Request tokens with the OAuth2 client-credentials grant."""

    def __init__(
        self,
        *,
        auth_url: str,
        client_id: str,
        client_secret: str,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not auth_url:
            raise ValueError("Auth URL must be configured")
        if not client_id or not client_secret:
            raise ValueError("Client credentials must be configured")
        self._token_url = f"{auth_url.rstrip('/')}/oauth/token"
        self._client_id = client_id
        self._client_secret = client_secret
        self._scopes = list(scopes or [])
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds

    async def fetch(self) -> AccessToken:
        data = {"grant_type": "client_credentials"}
        if self._scopes:
            data["scope"] = " ".join(self._scopes)

        client = self._http_client or httpx.AsyncClient(timeout=self._timeout_seconds)
        owns_client = self._http_client is None
        try:
            response = await client.post(
                self._token_url,
                data=data,
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as exc:
            raise CommerceAuthError(str(exc), url=self._token_url) from exc
        finally:
            if owns_client:
                await client.aclose()

        if response.status_code != 200:
            raise CommerceAuthError(
                f"Auth server responded with status {response.status_code}",
                status_code=response.status_code,
                url=self._token_url,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise CommerceAuthError("Auth server returned a non-JSON body", url=self._token_url) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise CommerceAuthError("Auth server response has no access_token", url=self._token_url)
        expires_in = payload.get("expires_in")
        lifetime = int(expires_in) if isinstance(expires_in, (int, float)) and expires_in > 0 else 3600
        return AccessToken(
            value=token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=lifetime),
        )


class CachedTokenProvider:
    """Caches a token until shortly before expiry; concurrent callers share one refresh."""

    def __init__(self, source: TokenSource, *, refresh_margin: timedelta | None = None) -> None:
        self._source = source
        self._refresh_margin = refresh_margin if refresh_margin is not None else timedelta(seconds=60)
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> str:
        cached = self._token
        if cached and cached.is_valid(datetime.now(timezone.utc), self._refresh_margin):
            return cached.value

        async with self._lock:
            cached = self._token
            if cached and cached.is_valid(datetime.now(timezone.utc), self._refresh_margin):
                return cached.value

            token = await self._source.fetch()
            self._token = token
            logger.debug("Commerce access token refreshed", expires_at=token.expires_at.isoformat())
            return token.value

    def invalidate(self) -> None:
        self._token = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "CachedTokenProvider":
        source = ClientCredentialsTokenSource(
            auth_url=settings.ctp_auth_url,
            client_id=settings.ctp_client_id,
            client_secret=settings.ctp_client_secret,
            scopes=settings.ctp_scopes,
            http_client=http_client,
            timeout_seconds=settings.ctp_timeout_seconds,
        )
        return cls(source, refresh_margin=timedelta(seconds=settings.ctp_token_refresh_margin_seconds))


__all__ = [
    "AccessToken",
    "CachedTokenProvider",
    "ClientCredentialsTokenSource",
    "TokenSource",
]
