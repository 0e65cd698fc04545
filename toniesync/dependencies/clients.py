"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

import boto3
from google.oauth2 import service_account

from toniesync.clients import (
    RecordStore,
    SyncAdapterClient,
    TonieAuthClient,
    TonieCloudClient,
)
from toniesync.core.config import get_settings
from toniesync.core.errors import InvalidArgument
from toniesync.services import (
    AdapterSyncBackend,
    CloudSyncBackend,
    CredentialService,
    CredentialStore,
    CredentialVault,
    DatabaseStorageProvider,
    GoogleDriveStorageProvider,
    S3StorageProvider,
    StorageProviderRegistry,
    SyncBackend,
    SyncJobStore,
    SyncOrchestrator,
    TonieLibraryService,
)

_DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide shared household/device/content store."""
    return RecordStore(_settings().database_path)


@lru_cache()
def get_credential_store() -> CredentialStore:
    return CredentialStore(_settings().database_path)


@lru_cache()
def get_sync_job_store() -> SyncJobStore:
    return SyncJobStore(_settings().database_path)


@lru_cache()
def get_credential_vault() -> CredentialVault:
    """Provide symmetric encryption helper for stored passwords."""
    return CredentialVault(secret=_settings().security.credential_encryption_secret)


@lru_cache()
def get_auth_client() -> TonieAuthClient:
    """Provide the process-wide Tonie auth client and its token cache."""
    return TonieAuthClient(_settings().tonie)


@lru_cache()
def get_cloud_client() -> TonieCloudClient:
    """Provide the Tonie Cloud API client."""
    return TonieCloudClient(_settings().tonie, get_auth_client())


@lru_cache()
def get_storage_registry() -> StorageProviderRegistry:
    """Register every storage provider the environment is configured for."""
    settings = _settings()
    registry = StorageProviderRegistry()
    registry.register(DatabaseStorageProvider(settings.database_path))

    storage = settings.storage
    if storage.s3_bucket:
        s3_client = boto3.client(
            "s3",
            endpoint_url=storage.s3_endpoint_url,
            region_name=storage.s3_region,
        )
        registry.register(S3StorageProvider(bucket=storage.s3_bucket, client=s3_client))

    if storage.google_service_account_file:
        key_file = storage.google_service_account_file

        def _drive_credentials():
            return service_account.Credentials.from_service_account_file(
                key_file, scopes=_DRIVE_SCOPES
            )

        registry.register(
            GoogleDriveStorageProvider(_drive_credentials, folder_id=storage.google_drive_folder_id)
        )
    return registry


@lru_cache()
def get_sync_adapter_client() -> SyncAdapterClient | None:
    """Provide the sync adapter client when an adapter URL is configured."""
    adapter_url = _settings().sync.adapter_url
    if not adapter_url:
        return None
    return SyncAdapterClient(base_url=str(adapter_url))


@lru_cache()
def get_sync_backend() -> SyncBackend:
    settings = _settings()
    if settings.sync.backend == "adapter":
        adapter = get_sync_adapter_client()
        if adapter is None:
            raise InvalidArgument("SYNC_ADAPTER_URL must be set when SYNC_BACKEND=adapter.")
        return AdapterSyncBackend(adapter)
    return CloudSyncBackend(get_cloud_client(), get_storage_registry())


def get_credential_service() -> CredentialService:
    """Build a credential service over the shared stores."""
    return CredentialService(
        store=get_credential_store(),
        vault=get_credential_vault(),
        auth_client=get_auth_client(),
        records=get_record_store(),
        touch_on_read=_settings().sync.touch_credential_on_read,
    )


def get_sync_orchestrator() -> SyncOrchestrator:
    """Build a sync orchestrator using the configured backend."""
    return SyncOrchestrator(
        records=get_record_store(),
        jobs=get_sync_job_store(),
        backend=get_sync_backend(),
        credentials=get_credential_service(),
        default_list_limit=_settings().sync.job_list_limit,
    )


def get_library_service() -> TonieLibraryService:
    return TonieLibraryService(
        cloud_client=get_cloud_client(),
        credentials=get_credential_service(),
        records=get_record_store(),
    )


async def close_clients() -> None:
    """Close the HTTP clients of any network client created so far."""
    if get_sync_adapter_client.cache_info().currsize:
        adapter = get_sync_adapter_client()
        if adapter is not None:
            await adapter.aclose()
    if get_cloud_client.cache_info().currsize:
        await get_cloud_client().aclose()
    if get_auth_client.cache_info().currsize:
        await get_auth_client().aclose()


__all__ = [
    "close_clients",
    "get_auth_client",
    "get_cloud_client",
    "get_credential_service",
    "get_credential_store",
    "get_credential_vault",
    "get_library_service",
    "get_record_store",
    "get_storage_registry",
    "get_sync_adapter_client",
    "get_sync_backend",
    "get_sync_job_store",
    "get_sync_orchestrator",
]
