"""
Records resolved from the household/device/content store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StorageProviderKind(str, Enum):
    DATABASE = "database"
    S3 = "s3"
    GOOGLE_DRIVE = "google_drive"
    DROPBOX = "dropbox"


@dataclass(frozen=True, slots=True)
class ContentLocator:
    """Where a content item's audio bytes live."""

    provider: StorageProviderKind
    path: str

    @property
    def uri(self) -> str:
        return f"{self.provider.value}://{self.path}"

    @classmethod
    def parse(cls, uri: str) -> "ContentLocator":
        scheme, sep, path = uri.partition("://")
        if not sep or not path:
            raise ValueError(f"Malformed content locator: {uri!r}")
        return cls(provider=StorageProviderKind(scheme), path=path)


@dataclass(frozen=True, slots=True)
class HouseholdRecord:
    id: int
    owner_id: str
    name: str
    external_id: Optional[str] = None

    @property
    def is_cloud_origin(self) -> bool:
        return self.external_id is not None


@dataclass(frozen=True, slots=True)
class DeviceRef:
    """What the orchestrator needs to address a device remotely."""

    id: int
    household_id: int
    name: str
    remote_device_identifier: str
    remote_household_identifier: Optional[str]


@dataclass(frozen=True, slots=True)
class ContentRef:
    id: int
    household_id: int
    title: str
    locator: ContentLocator


__all__ = [
    "ContentLocator",
    "ContentRef",
    "DeviceRef",
    "HouseholdRecord",
    "StorageProviderKind",
]
