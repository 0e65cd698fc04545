"""Mirror an owner's Tonie Cloud households and Creative Tonies into the record store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from toniesync.clients.sqlite_store import RecordStore
from toniesync.clients.tonie_cloud import TonieCloudClient
from toniesync.services.credentials import CredentialService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LibraryRefreshSummary:
    households: int
    devices: int


class TonieLibraryService:
    def __init__(
        self,
        *,
        cloud_client: TonieCloudClient,
        credentials: CredentialService,
        records: RecordStore,
    ) -> None:
        self._cloud = cloud_client
        self._credentials = credentials
        self._records = records

    async def refresh(self, owner_id: str) -> LibraryRefreshSummary:
        """Upsert every household and Creative Tonie visible to the owner's default account."""
        login = self._credentials.load_default(owner_id)
        households = await self._cloud.list_households(login.username, login.password)

        device_count = 0
        for household in households:
            record = self._records.upsert_cloud_household(
                owner_id=owner_id, external_id=household.id, name=household.name
            )
            tonies = await self._cloud.list_devices(login.username, login.password, household.id)
            for tonie in tonies:
                self._records.upsert_cloud_device(
                    household_id=record.id,
                    remote_device_identifier=tonie.id,
                    name=tonie.name,
                )
            device_count += len(tonies)

        logger.info(
            "Refreshed Tonie library",
            extra={"owner_id": owner_id, "households": len(households), "devices": device_count},
        )
        return LibraryRefreshSummary(households=len(households), devices=device_count)


__all__ = ["LibraryRefreshSummary", "TonieLibraryService"]
