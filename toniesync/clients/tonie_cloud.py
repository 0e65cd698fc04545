"""
Client for the Tonie Cloud REST API (``api.tonie.cloud/v2``).

Every call carries ``Authorization: Bearer <token>`` from the auth client.
The API has no append operation for chapters: a device's chapter list is
replaced wholesale by ``PATCH``, so every mutation here is a read-modify-write
against freshly fetched chapters, serialized per device.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, BinaryIO, Iterable, List, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from toniesync.clients.object_storage import ObjectStorageUploader
from toniesync.clients.tonie_auth import TonieAuthClient
from toniesync.core.config import TonieCloudSettings
from toniesync.core.errors import (
    AuthenticationFailed,
    InvalidArgument,
    NotFound,
    RemoteProtocolError,
)
from toniesync.schemas.tonie import Chapter, CreativeTonie, Household, SyncResult, UploadToken
from toniesync.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

_HOUSEHOLDS = TypeAdapter(List[Household])
_TONIES = TypeAdapter(List[CreativeTonie])


class TonieCloudClient:
    """Read households and Creative Tonies, upload audio and rewrite chapter lists."""

    def __init__(
        self,
        settings: TonieCloudSettings,
        auth_client: TonieAuthClient,
        *,
        uploader: ObjectStorageUploader | None = None,
        http_client: httpx.AsyncClient | None = None,
        device_locks: KeyedLock | None = None,
    ) -> None:
        self._base_url = str(settings.api_base_url).rstrip("/")
        self._auth = auth_client
        self._http = http_client or httpx.AsyncClient(timeout=None)
        if uploader is None:
            uploader = ObjectStorageUploader(http_client=self._http)
        self._uploader = uploader
        self._device_locks = device_locks if device_locks is not None else KeyedLock()

    # ------------------------------------------------------------------ reads

    async def list_households(self, identity: str, secret: str) -> List[Household]:
        response = await self._request("GET", "/households", identity, secret)
        households = self._parse(_HOUSEHOLDS, response, what="households") or []
        logger.info(
            "Retrieved households", extra={"username": identity, "count": len(households)}
        )
        return households

    async def list_devices(
        self, identity: str, secret: str, household_id: str
    ) -> List[CreativeTonie]:
        if not household_id:
            raise InvalidArgument("Household id is required.")
        response = await self._request(
            "GET", f"/households/{household_id}/creativetonies", identity, secret
        )
        tonies = self._parse(_TONIES, response, what="creative tonies") or []
        logger.info(
            "Retrieved creative tonies",
            extra={"household_id": household_id, "count": len(tonies)},
        )
        return tonies

    async def get_device_detail(
        self, identity: str, secret: str, household_id: str, device_id: str
    ) -> CreativeTonie:
        self._require_device(household_id, device_id)
        response = await self._request(
            "GET",
            f"/households/{household_id}/creativetonies/{device_id}",
            identity,
            secret,
        )
        tonie = self._parse(CreativeTonie, response, what="creative tonie")
        logger.info(
            "Retrieved creative tonie details",
            extra={"device_id": device_id, "chapters": len(tonie.chapters)},
        )
        return tonie

    # ----------------------------------------------------------------- writes

    async def request_upload_token(self, identity: str, secret: str) -> UploadToken:
        response = await self._request("POST", "/file", identity, secret)
        return self._parse(UploadToken, response, what="upload token")

    async def patch_device(
        self,
        identity: str,
        secret: str,
        household_id: str,
        device_id: str,
        name: str,
        chapters: Sequence[Chapter],
    ) -> CreativeTonie:
        """Replace the device's chapter list with ``chapters``.

        Chapters left out of ``chapters`` are deleted remotely, so callers must
        start from a freshly fetched list.
        """
        self._require_device(household_id, device_id)
        if not chapters:
            raise InvalidArgument("Refusing to PATCH an empty chapter list.")
        body = {
            "name": name,
            "chapters": [chapter.to_patch_entry() for chapter in chapters],
        }
        response = await self._request(
            "PATCH",
            f"/households/{household_id}/creativetonies/{device_id}",
            identity,
            secret,
            json=body,
        )
        logger.info(
            "Patched creative tonie",
            extra={"device_id": device_id, "chapters": len(chapters)},
        )
        return self._parse(CreativeTonie, response, what="creative tonie")

    async def sync_audio(
        self,
        identity: str,
        secret: str,
        household_id: str,
        device_id: str,
        audio_stream: BinaryIO,
        title: str,
    ) -> SyncResult:
        """Upload one audio file and append it as the device's last chapter.

        Failures at any stage come back as an unsuccessful ``SyncResult``
        naming the stage; only argument errors and cancellation propagate.
        """
        self._require_device(household_id, device_id)
        if audio_stream is None:
            raise InvalidArgument("Audio stream is required.")
        if not title:
            raise InvalidArgument("Title is required.")

        stage = "upload token"
        try:
            token = await self.request_upload_token(identity, secret)

            stage = "object upload"
            await self._uploader.upload(token.url, token.fields, token.file_id, audio_stream)

            async with self._device_locks.hold(device_id):
                stage = "chapter fetch"
                tonie = await self.get_device_detail(identity, secret, household_id, device_id)
                chapters = [*tonie.chapters, Chapter(title=title, file=token.file_id)]

                stage = "patch"
                await self.patch_device(
                    identity, secret, household_id, device_id, tonie.name, chapters
                )
        except Exception as exc:
            logger.error(
                "Audio sync failed",
                extra={"device_id": device_id, "stage": stage, "error": str(exc)},
            )
            return SyncResult.failed(stage, exc)

        logger.info("Uploaded audio to creative tonie", extra={"device_id": device_id})
        return SyncResult(
            success=True,
            message=f"Successfully uploaded '{title}' to Tonie",
            tracks_processed=1,
        )

    async def remove_chapter(
        self,
        identity: str,
        secret: str,
        household_id: str,
        device_id: str,
        chapter_id: str,
    ) -> bool:
        """Delete one chapter; returns False when the device does not have it."""
        if not chapter_id:
            raise InvalidArgument("Chapter id is required.")
        async with self._device_locks.hold(device_id):
            tonie = await self.get_device_detail(identity, secret, household_id, device_id)
            remaining = [chapter for chapter in tonie.chapters if chapter.id != chapter_id]
            if len(remaining) == len(tonie.chapters):
                logger.warning(
                    "Chapter not found on creative tonie",
                    extra={"device_id": device_id, "chapter_id": chapter_id},
                )
                return False
            await self.patch_device(
                identity, secret, household_id, device_id, tonie.name, remaining
            )
        return True

    async def reorder_chapters(
        self,
        identity: str,
        secret: str,
        household_id: str,
        device_id: str,
        ordered_chapter_ids: Iterable[str],
    ) -> CreativeTonie:
        """Rewrite the chapter order; the ids must be exactly the current chapters."""
        ordered_ids = list(ordered_chapter_ids)
        async with self._device_locks.hold(device_id):
            tonie = await self.get_device_detail(identity, secret, household_id, device_id)
            by_id = {chapter.id: chapter for chapter in tonie.chapters}
            if sorted(ordered_ids) != sorted(by_id):
                raise InvalidArgument(
                    "Chapter order must list every current chapter exactly once."
                )
            return await self.patch_device(
                identity,
                secret,
                household_id,
                device_id,
                tonie.name,
                [by_id[chapter_id] for chapter_id in ordered_ids],
            )

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _require_device(household_id: str, device_id: str) -> None:
        if not household_id:
            raise InvalidArgument("Household id is required.")
        if not device_id:
            raise InvalidArgument("Tonie id is required.")

    async def _request(
        self,
        method: str,
        path: str,
        identity: str,
        secret: str,
        *,
        json: Any = None,
    ) -> httpx.Response:
        token = await self._auth.get_token(identity, secret)
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self._base_url}{path}"

        logger.debug("Tonie Cloud request", extra={"method": method, "path": path})
        try:
            response = await self._http.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise RemoteProtocolError(f"{method} {path} failed: {exc}") from exc

        if response.is_success:
            return response

        logger.error(
            "Tonie Cloud request failed",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        if response.status_code == HTTPStatus.UNAUTHORIZED:
            self._auth.invalidate(identity)
            raise AuthenticationFailed(
                f"{method} {path} rejected the bearer token",
                status_code=response.status_code,
                body=response.text,
            )
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFound(f"{path} not found in Tonie Cloud")
        raise RemoteProtocolError(
            f"{method} {path} failed",
            status_code=response.status_code,
            body=response.text,
        )

    @staticmethod
    def _parse(model: Any, response: httpx.Response, *, what: str) -> Any:
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteProtocolError(
                f"Tonie Cloud returned non-JSON {what}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        try:
            if isinstance(model, TypeAdapter):
                return model.validate_python(payload)
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RemoteProtocolError(f"Unexpected {what} payload: {exc}") from exc

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["TonieCloudClient"]
