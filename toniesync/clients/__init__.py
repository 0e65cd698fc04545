"""Expose constructed client wrappers."""

from .object_storage import ObjectStorageUploader
from .sqlite_store import RecordStore, SQLiteStore
from .sync_adapter import AdapterHealth, AdapterTrack, SyncAdapterClient
from .tonie_auth import TokenCache, TonieAuthClient
from .tonie_cloud import TonieCloudClient

__all__ = [
    "AdapterHealth",
    "AdapterTrack",
    "ObjectStorageUploader",
    "RecordStore",
    "SQLiteStore",
    "SyncAdapterClient",
    "TokenCache",
    "TonieAuthClient",
    "TonieCloudClient",
]
