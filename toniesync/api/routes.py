"""
FastAPI routes for the Tonie sync service.
"""

from __future__ import annotations

import base64
import binascii
import logging
from http import HTTPStatus
from typing import Annotated, Any, List

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from toniesync.core.errors import (
    AuthenticationFailed,
    CorruptCiphertext,
    InvalidArgument,
    NotFound,
    TonieSyncError,
)
from toniesync.dependencies import (
    get_app_settings,
    get_credential_service,
    get_library_service,
    get_record_store,
    get_storage_registry,
    get_sync_adapter_client,
    get_sync_orchestrator,
)
from toniesync.models import StorageProviderKind, SyncJob, TonieCredential
from toniesync.schemas import (
    ContentResponse,
    ContentUploadRequest,
    LibraryRefreshResponse,
    LinkAccountRequest,
    UnlinkAccountResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

UserId = Annotated[str, Query(min_length=1, description="Local user making the request.")]


def _http_error(exc: TonieSyncError) -> HTTPException:
    if isinstance(exc, NotFound):
        status = HTTPStatus.NOT_FOUND
    elif isinstance(exc, InvalidArgument):
        status = HTTPStatus.BAD_REQUEST
    elif isinstance(exc, AuthenticationFailed):
        status = HTTPStatus.UNAUTHORIZED
    elif isinstance(exc, CorruptCiphertext):
        status = HTTPStatus.INTERNAL_SERVER_ERROR
    else:
        status = HTTPStatus.BAD_GATEWAY
    return HTTPException(status_code=status, detail=str(exc))


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


# ---------------------------------------------------------------- accounts


@router.post("/accounts", status_code=HTTPStatus.CREATED, response_model=TonieCredential)
async def link_account(
    payload: LinkAccountRequest,
    user_id: UserId,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> TonieCredential:
    """Verify a Tonie Cloud login and store it for the user."""
    try:
        return await credentials.link_account(
            owner_id=user_id,
            username=payload.username,
            password=payload.password,
            display_name=payload.display_name,
        )
    except TonieSyncError as exc:
        raise _http_error(exc) from exc


@router.get("/accounts", response_model=List[TonieCredential])
async def list_accounts(
    user_id: UserId,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> List[TonieCredential]:
    return credentials.list_accounts(user_id)


@router.post("/accounts/{credential_id}/default", response_model=TonieCredential)
async def set_default_account(
    credential_id: int,
    user_id: UserId,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> TonieCredential:
    try:
        return credentials.set_default(user_id, credential_id)
    except TonieSyncError as exc:
        raise _http_error(exc) from exc


@router.delete("/accounts/{credential_id}", response_model=UnlinkAccountResponse)
async def unlink_account(
    credential_id: int,
    user_id: UserId,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> UnlinkAccountResponse:
    """Remove a linked account together with the households mirrored from it."""
    try:
        summary = credentials.unlink_account(user_id, credential_id)
    except TonieSyncError as exc:
        raise _http_error(exc) from exc
    return UnlinkAccountResponse(
        credential_id=summary.credential.id,
        username=summary.credential.username,
        households_deleted=summary.households_deleted,
        devices_deleted=summary.devices_deleted,
    )


# ----------------------------------------------------------------- library


@router.post("/library/refresh", response_model=LibraryRefreshResponse)
async def refresh_library(
    user_id: UserId,
    library: Annotated[Any, Depends(get_library_service)],
) -> LibraryRefreshResponse:
    """Pull households and Creative Tonies from the user's default account."""
    try:
        summary = await library.refresh(user_id)
    except TonieSyncError as exc:
        raise _http_error(exc) from exc
    return LibraryRefreshResponse(households=summary.households, devices=summary.devices)


@router.post(
    "/households/{household_id}/content",
    status_code=HTTPStatus.CREATED,
    response_model=ContentResponse,
)
async def upload_content(
    household_id: int,
    payload: ContentUploadRequest,
    user_id: UserId,
    records: Annotated[Any, Depends(get_record_store)],
    storage: Annotated[Any, Depends(get_storage_registry)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> ContentResponse:
    """Store an audio file and register it as content of the household."""
    try:
        data = base64.b64decode(payload.file_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="file_b64 is not valid base64."
        ) from exc
    if not data:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Audio file is empty.")

    provider_name = payload.provider or settings.storage.default_provider
    try:
        kind = StorageProviderKind(provider_name)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Unknown storage provider {provider_name!r}.",
        ) from exc

    try:
        household = records.get_household(household_id)
        provider = storage.get(kind)
        locator = await provider.upload(
            data,
            file_name=payload.filename,
            content_type=payload.mime_type,
            owner_id=household.owner_id,
        )
        content = records.add_content(
            household_id=household.id, title=payload.title, locator=locator
        )
    except TonieSyncError as exc:
        raise _http_error(exc) from exc

    logger.info(
        "Stored content",
        extra={"household_id": household_id, "content_id": content.id, "user_id": user_id},
    )
    return ContentResponse(
        id=content.id,
        household_id=content.household_id,
        title=content.title,
        locator=content.locator.uri,
    )


# -------------------------------------------------------------------- sync


@router.post("/sync/{device_id}/apply/{content_id}", response_model=SyncJob)
async def apply_content(
    device_id: int,
    content_id: int,
    user_id: UserId,
    orchestrator: Annotated[Any, Depends(get_sync_orchestrator)],
) -> SyncJob:
    """Push content to a device; the returned job is always Completed or Failed."""
    try:
        return await orchestrator.execute_sync(device_id, content_id, user_id)
    except TonieSyncError as exc:
        raise _http_error(exc) from exc


@router.get("/sync/jobs/{job_id}", response_model=SyncJob)
async def get_sync_job(
    job_id: int,
    orchestrator: Annotated[Any, Depends(get_sync_orchestrator)],
) -> SyncJob:
    job = orchestrator.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Sync job not found.")
    return job


@router.get("/sync/households/{household_id}/jobs", response_model=List[SyncJob])
async def list_sync_jobs(
    household_id: int,
    orchestrator: Annotated[Any, Depends(get_sync_orchestrator)],
    limit: int | None = Query(default=None, ge=1, le=500),
) -> List[SyncJob]:
    """Sync history for a household, most recent first."""
    try:
        return orchestrator.list_jobs(household_id, limit)
    except TonieSyncError as exc:
        raise _http_error(exc) from exc


@router.get("/sync/adapter/health")
async def sync_adapter_health(
    adapter: Annotated[Any, Depends(get_sync_adapter_client)],
) -> dict:
    """Report the sync adapter's health when one is configured."""
    if adapter is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="No sync adapter is configured."
        )
    try:
        health = await adapter.get_health()
    except TonieSyncError as exc:
        raise _http_error(exc) from exc
    except httpx.HTTPError as exc:
        logger.warning("Sync adapter health check failed", extra={"error": str(exc)})
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY, detail="Sync adapter is unreachable."
        ) from exc
    return health.model_dump(by_alias=True)
