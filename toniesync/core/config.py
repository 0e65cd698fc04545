"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the sync orchestrator and
the cloud clients share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class TonieCloudSettings(BaseSettings):
    """Endpoints and client identity for the Tonie Cloud."""

    model_config = _ENV_CONFIG

    token_url: AnyHttpUrl = Field(
        "https://login.tonies.com/auth/realms/tonies/protocol/openid-connect/token",
        validation_alias="TONIE_TOKEN_URL",
    )
    client_id: str = Field("tonies-webapp", validation_alias="TONIE_CLIENT_ID")
    api_base_url: AnyHttpUrl = Field(
        "https://api.tonie.cloud/v2", validation_alias="TONIE_API_BASE_URL"
    )
    token_refresh_buffer_seconds: int = Field(
        300,
        validation_alias="TONIE_TOKEN_REFRESH_BUFFER_SECONDS",
        description="Cached tokens are refreshed this long before they expire.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _ENV_CONFIG

    credential_encryption_secret: str = Field(
        ...,
        validation_alias="CREDENTIAL_ENCRYPTION_SECRET",
        description="Secret used to derive the key that encrypts stored passwords.",
    )


class StorageSettings(BaseSettings):
    """Where content audio bytes live."""

    model_config = _ENV_CONFIG

    default_provider: Literal["database", "s3", "google_drive"] = Field(
        "database", validation_alias="STORAGE_DEFAULT_PROVIDER"
    )
    s3_bucket: Optional[str] = Field(None, validation_alias="S3_BUCKET")
    s3_endpoint_url: Optional[str] = Field(
        None,
        validation_alias="S3_ENDPOINT_URL",
        description="Override for S3-compatible services (MinIO, Spaces, ...).",
    )
    s3_region: str = Field("us-east-1", validation_alias="S3_REGION")
    google_service_account_file: Optional[str] = Field(
        None,
        validation_alias="GOOGLE_SERVICE_ACCOUNT_FILE",
        description="Service account key used by the Google Drive provider.",
    )
    google_drive_folder_id: Optional[str] = Field(None, validation_alias="GOOGLE_DRIVE_FOLDER_ID")


class SyncSettings(BaseSettings):
    """Sync orchestration settings."""

    model_config = _ENV_CONFIG

    backend: Literal["cloud", "adapter"] = Field("cloud", validation_alias="SYNC_BACKEND")
    adapter_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="SYNC_ADAPTER_URL",
        description="Base URL of the sync adapter when SYNC_BACKEND=adapter.",
    )
    job_list_limit: int = Field(50, validation_alias="SYNC_JOB_LIST_LIMIT")
    touch_credential_on_read: bool = Field(
        True,
        validation_alias="SYNC_TOUCH_CREDENTIAL_ON_READ",
        description="Stamp last_authenticated every time a credential is loaded.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field("data/toniesync.db", validation_alias="DATABASE_PATH")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    tonie: TonieCloudSettings = Field(default_factory=TonieCloudSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "SecuritySettings",
    "StorageSettings",
    "SyncSettings",
    "TonieCloudSettings",
    "get_settings",
]
