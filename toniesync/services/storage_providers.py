"""
Storage back-ends for content audio bytes.

Each provider offers the same capability set (upload, download, delete,
exists, metadata); the registry picks one by the locator's provider tag.
"""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Dict, Optional, Protocol

from botocore.exceptions import ClientError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from toniesync.clients.sqlite_store import SQLiteStore, parse_timestamp, utcnow_iso
from toniesync.core.errors import InvalidArgument, NotFound
from toniesync.models.records import ContentLocator, StorageProviderKind

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from google.auth.credentials import Credentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FileMetadata:
    path: str
    size_bytes: int
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None


class StorageProvider(Protocol):
    kind: StorageProviderKind

    async def upload(
        self, content: bytes, *, file_name: str, content_type: str, owner_id: str
    ) -> ContentLocator: ...

    async def download(self, path: str) -> bytes: ...

    async def delete(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...

    async def metadata(self, path: str) -> Optional[FileMetadata]: ...


class DatabaseStorageProvider(SQLiteStore):
    """Keep audio blobs in the application's SQLite database."""

    kind = StorageProviderKind.DATABASE

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS content_blobs (
            path TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            file_name TEXT NOT NULL,
            content_type TEXT NOT NULL,
            data BLOB NOT NULL,
            created_at TEXT NOT NULL
        )
    """

    async def upload(
        self, content: bytes, *, file_name: str, content_type: str, owner_id: str
    ) -> ContentLocator:
        path = f"{owner_id}/{uuid.uuid4().hex}"
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO content_blobs (path, owner_id, file_name, content_type, data, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (path, owner_id, file_name, content_type, content, utcnow_iso()),
            )
        return ContentLocator(provider=self.kind, path=path)

    async def download(self, path: str) -> bytes:
        with self._connect() as conn:
            row = conn.execute("SELECT data FROM content_blobs WHERE path = ?", (path,)).fetchone()
        if not row:
            raise NotFound(f"Stored file {path} not found.")
        return bytes(row["data"])

    async def delete(self, path: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM content_blobs WHERE path = ?", (path,))

    async def exists(self, path: str) -> bool:
        return await self.metadata(path) is not None

    async def metadata(self, path: str) -> Optional[FileMetadata]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT path, length(data) AS size_bytes, created_at, content_type "
                "FROM content_blobs WHERE path = ?",
                (path,),
            ).fetchone()
        if not row:
            return None
        return FileMetadata(
            path=row["path"],
            size_bytes=row["size_bytes"],
            last_modified=parse_timestamp(row["created_at"]),
            content_type=row["content_type"],
        )


class S3StorageProvider:
    """S3-compatible bucket (AWS, MinIO, Spaces, ...) through a boto3 client."""

    kind = StorageProviderKind.S3

    def __init__(self, *, bucket: str, client: Any) -> None:
        if not bucket:
            raise InvalidArgument("S3 bucket name is required.")
        self._bucket = bucket
        self._client = client

    async def upload(
        self, content: bytes, *, file_name: str, content_type: str, owner_id: str
    ) -> ContentLocator:
        key = f"content/{owner_id}/{uuid.uuid4().hex}-{file_name}"
        await asyncio.to_thread(
            self._client.put_object,
            Bucket=self._bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
        return ContentLocator(provider=self.kind, path=key)

    async def download(self, path: str) -> bytes:
        def _execute_download() -> bytes:
            try:
                response = self._client.get_object(Bucket=self._bucket, Key=path)
            except ClientError as exc:
                if _is_missing(exc):
                    raise NotFound(f"Stored file {path} not found.") from exc
                raise
            return response["Body"].read()

        return await asyncio.to_thread(_execute_download)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=path)

    async def exists(self, path: str) -> bool:
        return await self.metadata(path) is not None

    async def metadata(self, path: str) -> Optional[FileMetadata]:
        def _execute_head() -> Optional[FileMetadata]:
            try:
                response = self._client.head_object(Bucket=self._bucket, Key=path)
            except ClientError as exc:
                if _is_missing(exc):
                    return None
                raise
            return FileMetadata(
                path=path,
                size_bytes=response.get("ContentLength", 0),
                last_modified=response.get("LastModified"),
                content_type=response.get("ContentType"),
            )

        return await asyncio.to_thread(_execute_head)


def _is_missing(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in {"404", "NoSuchKey", "NotFound"}


class GoogleDriveStorageProvider:
    """Files in the user's Google Drive, addressed by Drive file id."""

    kind = StorageProviderKind.GOOGLE_DRIVE

    def __init__(
        self,
        credentials_factory: Callable[[], "Credentials"],
        folder_id: str | None = None,
    ) -> None:
        self._credentials_factory = credentials_factory
        self._folder_id = folder_id

    def _service(self) -> Any:
        return build("drive", "v3", credentials=self._credentials_factory(), cache_discovery=False)

    async def upload(
        self, content: bytes, *, file_name: str, content_type: str, owner_id: str
    ) -> ContentLocator:
        def _execute_upload() -> str:
            file_metadata: Dict[str, Any] = {
                "name": file_name,
                "appProperties": {"owner_id": owner_id},
            }
            if self._folder_id:
                file_metadata["parents"] = [self._folder_id]
            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=content_type, resumable=False)
            created = (
                self._service()
                .files()
                .create(body=file_metadata, media_body=media, fields="id")
                .execute()
            )
            return created["id"]

        file_id = await asyncio.to_thread(_execute_upload)
        return ContentLocator(provider=self.kind, path=file_id)

    async def download(self, path: str) -> bytes:
        def _execute_download() -> bytes:
            request = self._service().files().get_media(fileId=path)
            fh = io.BytesIO()
            downloader = MediaIoBaseDownload(fh, request)
            done = False
            try:
                while not done:
                    _, done = downloader.next_chunk()
            except HttpError as exc:
                if exc.resp.status == 404:
                    raise NotFound(f"Drive file {path} not found.") from exc
                raise
            return fh.getvalue()

        return await asyncio.to_thread(_execute_download)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(lambda: self._service().files().delete(fileId=path).execute())

    async def exists(self, path: str) -> bool:
        return await self.metadata(path) is not None

    async def metadata(self, path: str) -> Optional[FileMetadata]:
        def _execute_metadata() -> Optional[FileMetadata]:
            try:
                data = (
                    self._service()
                    .files()
                    .get(fileId=path, fields="id,size,mimeType,modifiedTime")
                    .execute()
                )
            except HttpError as exc:
                if exc.resp.status == 404:
                    return None
                raise
            modified = data.get("modifiedTime")
            return FileMetadata(
                path=path,
                size_bytes=int(data.get("size", 0)),
                last_modified=parse_timestamp(modified.replace("Z", "+00:00")) if modified else None,
                content_type=data.get("mimeType"),
            )

        return await asyncio.to_thread(_execute_metadata)


class StorageProviderRegistry:
    """Select a provider by kind and open content by locator."""

    def __init__(self, providers: Dict[StorageProviderKind, StorageProvider] | None = None) -> None:
        self._providers: Dict[StorageProviderKind, StorageProvider] = dict(providers or {})

    def register(self, provider: StorageProvider) -> None:
        self._providers[provider.kind] = provider

    def get(self, kind: StorageProviderKind) -> StorageProvider:
        provider = self._providers.get(kind)
        if provider is None:
            raise InvalidArgument(f"Storage provider {kind.value!r} is not configured.")
        return provider

    async def open(self, locator: ContentLocator) -> BinaryIO:
        data = await self.get(locator.provider).download(locator.path)
        logger.debug(
            "Opened content",
            extra={"locator": locator.uri, "size_bytes": len(data)},
        )
        return io.BytesIO(data)


__all__ = [
    "DatabaseStorageProvider",
    "FileMetadata",
    "GoogleDriveStorageProvider",
    "S3StorageProvider",
    "StorageProvider",
    "StorageProviderRegistry",
]
