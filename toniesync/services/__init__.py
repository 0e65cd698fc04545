"""Service layer exports."""

from .credential_vault import CredentialVault
from .credentials import CloudLogin, CredentialService, CredentialStore, UnlinkSummary
from .storage_providers import (
    DatabaseStorageProvider,
    FileMetadata,
    GoogleDriveStorageProvider,
    S3StorageProvider,
    StorageProvider,
    StorageProviderRegistry,
)
from .sync_backends import AdapterSyncBackend, CloudSyncBackend, SyncBackend, Track
from .sync_jobs import SyncJobStore, SyncOrchestrator
from .tonie_library import LibraryRefreshSummary, TonieLibraryService

__all__ = [
    "AdapterSyncBackend",
    "CloudLogin",
    "CloudSyncBackend",
    "CredentialService",
    "CredentialStore",
    "CredentialVault",
    "DatabaseStorageProvider",
    "FileMetadata",
    "GoogleDriveStorageProvider",
    "LibraryRefreshSummary",
    "S3StorageProvider",
    "StorageProvider",
    "StorageProviderRegistry",
    "SyncBackend",
    "SyncJobStore",
    "SyncOrchestrator",
    "TonieLibraryService",
    "Track",
    "UnlinkSummary",
]
