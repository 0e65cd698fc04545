"""
Interchangeable final-step implementations behind the sync orchestrator.

``CloudSyncBackend`` talks to Tonie Cloud directly; ``AdapterSyncBackend``
hands the tracks to a separate adapter process. Both report a ``SyncResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from toniesync.clients.sync_adapter import AdapterTrack, SyncAdapterClient
from toniesync.clients.tonie_cloud import TonieCloudClient
from toniesync.core.errors import InvalidArgument
from toniesync.models.records import ContentLocator, DeviceRef
from toniesync.schemas.tonie import SyncResult
from toniesync.services.credentials import CloudLogin
from toniesync.services.storage_providers import StorageProviderRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Track:
    title: str
    locator: ContentLocator


class SyncBackend(Protocol):
    requires_login: bool

    async def sync(
        self,
        device: DeviceRef,
        tracks: Sequence[Track],
        login: Optional[CloudLogin] = None,
    ) -> SyncResult: ...


class CloudSyncBackend:
    """Upload each track through ``TonieCloudClient.sync_audio``, in order."""

    requires_login = True

    def __init__(self, cloud_client: TonieCloudClient, storage: StorageProviderRegistry) -> None:
        self._cloud = cloud_client
        self._storage = storage

    async def sync(
        self,
        device: DeviceRef,
        tracks: Sequence[Track],
        login: Optional[CloudLogin] = None,
    ) -> SyncResult:
        if login is None:
            raise InvalidArgument("A Tonie Cloud login is required for cloud sync.")
        if not tracks:
            raise InvalidArgument("At least one track is required.")
        if not device.remote_household_identifier:
            raise InvalidArgument(
                f"Device {device.id} is not linked to a Tonie Cloud household."
            )

        processed = 0
        for track in tracks:
            stream = await self._storage.open(track.locator)
            with stream:
                result = await self._cloud.sync_audio(
                    login.username,
                    login.password,
                    device.remote_household_identifier,
                    device.remote_device_identifier,
                    stream,
                    track.title,
                )
            if not result.success:
                # Tracks already appended stay on the device.
                return result.model_copy(update={"tracks_processed": processed})
            processed += result.tracks_processed

        return SyncResult(
            success=True,
            message=f"Synced {processed} track(s) to {device.name}",
            tracks_processed=processed,
        )


class AdapterSyncBackend:
    """Delegate the whole upload to the sync adapter's ``POST /sync``."""

    requires_login = False

    def __init__(self, adapter_client: SyncAdapterClient) -> None:
        self._adapter = adapter_client

    async def sync(
        self,
        device: DeviceRef,
        tracks: Sequence[Track],
        login: Optional[CloudLogin] = None,
    ) -> SyncResult:
        adapter_tracks = [
            AdapterTrack(title=track.title, source_url=track.locator.uri) for track in tracks
        ]
        result = await self._adapter.sync(device.remote_device_identifier, adapter_tracks)
        logger.info(
            "Sync adapter responded",
            extra={
                "device_id": device.id,
                "success": result.success,
                "tracks_processed": result.tracks_processed,
            },
        )
        return result


__all__ = ["AdapterSyncBackend", "CloudSyncBackend", "SyncBackend", "Track"]
