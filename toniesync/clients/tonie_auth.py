"""
Tonie Cloud authentication.

Exchanges a username/password for a bearer token with the password grant and
keeps one token per username in an injected, process-local cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from toniesync.core.config import TonieCloudSettings
from toniesync.core.errors import AuthenticationFailed, InvalidArgument, RemoteProtocolError
from toniesync.schemas.tonie import TokenResponse
from toniesync.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CachedToken:
    identity: str
    access_token: str
    expires_at: datetime


class TokenCache:
    """Bearer tokens keyed by identity.

    A token is only handed out while ``now < expires_at - refresh_buffer``;
    past that point it counts as absent so callers fetch a fresh one before
    the cloud starts rejecting it.
    """

    def __init__(
        self,
        *,
        refresh_buffer: timedelta = timedelta(minutes=5),
        clock: Clock = _utcnow,
    ) -> None:
        self._entries: Dict[str, CachedToken] = {}
        self._buffer = refresh_buffer
        self._clock = clock

    def get(self, identity: str) -> Optional[str]:
        entry = self._entries.get(identity)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at - self._buffer:
            del self._entries[identity]
            return None
        return entry.access_token

    def put(self, identity: str, access_token: str, *, expires_in: int) -> CachedToken:
        entry = CachedToken(
            identity=identity,
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
        )
        self._entries[identity] = entry
        return entry

    def invalidate(self, identity: str) -> None:
        self._entries.pop(identity, None)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TonieAuthClient:
    """Hand out bearer tokens, from cache when fresh or via the token endpoint."""

    def __init__(
        self,
        settings: TonieCloudSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        cache: TokenCache | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client or httpx.AsyncClient(timeout=None)
        self._cache = cache if cache is not None else TokenCache(
            refresh_buffer=timedelta(seconds=settings.token_refresh_buffer_seconds)
        )
        self._locks = KeyedLock()

    @property
    def cache(self) -> TokenCache:
        return self._cache

    async def get_token(self, identity: str, secret: str) -> str:
        """Return a usable bearer token for ``identity``."""
        if not identity:
            raise InvalidArgument("Username is required.")
        if not secret:
            raise InvalidArgument("Password is required.")

        cached = self._cache.get(identity)
        if cached:
            logger.debug("Using cached token", extra={"username": identity})
            return cached

        # Concurrent callers for the same identity share one token request.
        async with self._locks.hold(identity):
            cached = self._cache.get(identity)
            if cached:
                return cached

            logger.info("Requesting new token", extra={"username": identity})
            token = await self._request_token(identity, secret)
            entry = self._cache.put(identity, token.access_token, expires_in=token.expires_in)
            logger.info(
                "Token cached",
                extra={"username": identity, "expires_at": entry.expires_at.isoformat()},
            )
            return token.access_token

    def invalidate(self, identity: str) -> None:
        """Drop any cached token for ``identity``; a no-op when none is cached."""
        if not identity:
            raise InvalidArgument("Username is required.")
        self._cache.invalidate(identity)
        logger.info("Token invalidated", extra={"username": identity})

    async def _request_token(self, username: str, password: str) -> TokenResponse:
        payload = {
            "grant_type": "password",
            "username": username,
            "password": password,
            "client_id": self._settings.client_id,
        }
        try:
            response = await self._http.post(str(self._settings.token_url), data=payload)
        except httpx.HTTPError as exc:
            raise RemoteProtocolError(f"Token request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Token request rejected",
                extra={"username": username, "status_code": response.status_code},
            )
            raise AuthenticationFailed(
                "Failed to authenticate with Tonie Cloud",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AuthenticationFailed(
                "Incomplete token payload returned from Tonie Cloud",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["CachedToken", "TokenCache", "TonieAuthClient"]
