"""Persisted record models."""

from .credential import TonieCredential
from .records import ContentLocator, ContentRef, DeviceRef, HouseholdRecord, StorageProviderKind
from .sync_job import SyncJob, SyncStatus

__all__ = [
    "ContentLocator",
    "ContentRef",
    "DeviceRef",
    "HouseholdRecord",
    "StorageProviderKind",
    "SyncJob",
    "SyncStatus",
    "TonieCredential",
]
