"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    close_clients,
    get_auth_client,
    get_cloud_client,
    get_credential_service,
    get_credential_store,
    get_credential_vault,
    get_library_service,
    get_record_store,
    get_storage_registry,
    get_sync_adapter_client,
    get_sync_backend,
    get_sync_job_store,
    get_sync_orchestrator,
)
from .config import get_app_settings

__all__ = [
    "close_clients",
    "get_app_settings",
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
