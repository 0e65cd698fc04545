"""Client for the out-of-process sync adapter used by some deployments."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toniesync.core.errors import InvalidArgument, RemoteProtocolError
from toniesync.schemas.tonie import SyncResult
from toniesync.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class AdapterTrack(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    source_url: str = Field(..., alias="sourceUrl")


class AdapterHealth(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: str
    version: Optional[str] = None
    checked_at: Optional[str] = Field(None, alias="checkedAt")


class SyncAdapterClient:
    """Talk to the adapter's ``GET /health`` and ``POST /sync`` endpoints."""

    def __init__(
        self,
        *,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        if not base_url:
            raise InvalidArgument("Sync adapter base URL is required.")
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=None)
        self._retry = retry_config or RetryConfig()

    async def get_health(self) -> AdapterHealth:
        """Probe the adapter; read-only, so transport failures are retried."""
        response = await request_with_retry(
            self._http.get,
            f"{self._base_url}/health",
            retry_config=self._retry,
        )
        if not response.is_success:
            raise RemoteProtocolError(
                "Sync adapter health check failed",
                status_code=response.status_code,
                body=response.text,
            )
        return AdapterHealth.model_validate(response.json())

    async def sync(self, device_external_id: str, tracks: List[AdapterTrack]) -> SyncResult:
        """Ask the adapter to push ``tracks`` to the device. Never retried."""
        if not device_external_id:
            raise InvalidArgument("Creative Tonie external id is required.")
        if not tracks:
            raise InvalidArgument("At least one track is required.")

        body = {
            "creativeTonieExternalId": device_external_id,
            "tracks": [track.model_dump(by_alias=True) for track in tracks],
        }
        logger.info(
            "Sending sync request to adapter",
            extra={"device_id": device_external_id, "tracks": len(tracks)},
        )
        try:
            response = await self._http.post(f"{self._base_url}/sync", json=body)
        except httpx.HTTPError as exc:
            raise RemoteProtocolError(f"Sync adapter request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        # The adapter reports sync failures in the body, with or without a 2xx.
        if isinstance(payload, dict) and "success" in payload:
            try:
                return SyncResult.model_validate(payload)
            except ValidationError as exc:
                raise RemoteProtocolError(f"Unexpected sync adapter payload: {exc}") from exc

        raise RemoteProtocolError(
            "Sync adapter request failed",
            status_code=response.status_code,
            body=response.text,
        )

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["AdapterHealth", "AdapterTrack", "SyncAdapterClient"]
