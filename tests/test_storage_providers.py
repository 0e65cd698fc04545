try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import io
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from toniesync.core.errors import InvalidArgument, NotFound
from toniesync.models import ContentLocator, StorageProviderKind
from toniesync.services import storage_providers
from toniesync.services.storage_providers import (
    DatabaseStorageProvider,
    GoogleDriveStorageProvider,
    S3StorageProvider,
    StorageProviderRegistry,
)


class FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], dict] = {}

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict:
        self.objects[(Bucket, Key)] = {"Body": Body, "ContentType": ContentType}
        return {}

    def get_object(self, *, Bucket: str, Key: str) -> dict:
        stored = self._lookup(Bucket, Key, "GetObject", "NoSuchKey")
        return {"Body": io.BytesIO(stored["Body"])}

    def head_object(self, *, Bucket: str, Key: str) -> dict:
        stored = self._lookup(Bucket, Key, "HeadObject", "404")
        return {
            "ContentLength": len(stored["Body"]),
            "ContentType": stored["ContentType"],
            "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

    def delete_object(self, *, Bucket: str, Key: str) -> dict:
        self.objects.pop((Bucket, Key), None)
        return {}

    def _lookup(self, bucket: str, key: str, operation: str, code: str) -> dict:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise ClientError({"Error": {"Code": code, "Message": "missing"}}, operation)


class FakeDriveRequest:
    def __init__(self, result: dict) -> None:
        self._result = result

    def execute(self) -> dict:
        return self._result


class FakeDriveFiles:
    def __init__(self) -> None:
        self.created: list[dict] = []

    def create(self, *, body: dict, media_body, fields: str) -> FakeDriveRequest:
        self.created.append({"body": body, "media": media_body})
        return FakeDriveRequest({"id": "drive-file-1"})

    def get(self, *, fileId: str, fields: str) -> FakeDriveRequest:
        return FakeDriveRequest(
            {
                "id": fileId,
                "size": "42",
                "mimeType": "audio/mpeg",
                "modifiedTime": "2024-01-01T00:00:00.000Z",
            }
        )


class FakeDriveService:
    def __init__(self) -> None:
        self.file_api = FakeDriveFiles()

    def files(self) -> FakeDriveFiles:
        return self.file_api


@pytest.mark.asyncio
async def test_database_provider_capabilities(db_path: str) -> None:
    provider = DatabaseStorageProvider(db_path)

    locator = await provider.upload(
        b"ID3-audio", file_name="song.mp3", content_type="audio/mpeg", owner_id="user-1"
    )

    assert locator.provider is StorageProviderKind.DATABASE
    assert locator.path.startswith("user-1/")
    assert await provider.download(locator.path) == b"ID3-audio"
    assert await provider.exists(locator.path) is True
    metadata = await provider.metadata(locator.path)
    assert metadata.size_bytes == len(b"ID3-audio")
    assert metadata.content_type == "audio/mpeg"

    await provider.delete(locator.path)
    assert await provider.exists(locator.path) is False
    with pytest.raises(NotFound):
        await provider.download(locator.path)


@pytest.mark.asyncio
async def test_s3_provider_capabilities() -> None:
    client = FakeS3Client()
    provider = S3StorageProvider(bucket="tonies", client=client)

    locator = await provider.upload(
        b"audio", file_name="song.mp3", content_type="audio/mpeg", owner_id="user-1"
    )

    assert locator.uri.startswith("s3://content/user-1/")
    assert locator.path.endswith("-song.mp3")
    assert await provider.download(locator.path) == b"audio"
    metadata = await provider.metadata(locator.path)
    assert metadata.size_bytes == 5
    assert metadata.content_type == "audio/mpeg"

    await provider.delete(locator.path)
    assert await provider.exists(locator.path) is False
    with pytest.raises(NotFound):
        await provider.download(locator.path)


def test_s3_provider_requires_bucket() -> None:
    with pytest.raises(InvalidArgument):
        S3StorageProvider(bucket="", client=FakeS3Client())


@pytest.mark.asyncio
async def test_google_drive_provider_upload_and_metadata(monkeypatch: pytest.MonkeyPatch) -> None:
    service = FakeDriveService()
    built: list[tuple] = []

    def fake_build(name, version, credentials, cache_discovery):
        built.append((name, version, credentials))
        return service

    monkeypatch.setattr(storage_providers, "build", fake_build)
    provider = GoogleDriveStorageProvider(lambda: "drive-credentials", folder_id="folder-1")

    locator = await provider.upload(
        b"audio", file_name="song.mp3", content_type="audio/mpeg", owner_id="user-1"
    )

    assert locator == ContentLocator(StorageProviderKind.GOOGLE_DRIVE, "drive-file-1")
    [created] = service.file_api.created
    assert created["body"]["parents"] == ["folder-1"]
    assert built[0] == ("drive", "v3", "drive-credentials")

    metadata = await provider.metadata("drive-file-1")
    assert metadata.size_bytes == 42
    assert metadata.last_modified == datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_registry_opens_content_by_locator(db_path: str) -> None:
    provider = DatabaseStorageProvider(db_path)
    registry = StorageProviderRegistry({provider.kind: provider})
    locator = await provider.upload(
        b"bytes", file_name="a.mp3", content_type="audio/mpeg", owner_id="user-1"
    )

    stream = await registry.open(ContentLocator.parse(locator.uri))

    assert stream.read() == b"bytes"


def test_registry_rejects_unconfigured_provider() -> None:
    registry = StorageProviderRegistry()

    with pytest.raises(InvalidArgument):
        registry.get(StorageProviderKind.DROPBOX)


def test_content_locator_parse() -> None:
    locator = ContentLocator.parse("s3://content/user-1/abc-song.mp3")

    assert locator.provider is StorageProviderKind.S3
    assert locator.path == "content/user-1/abc-song.mp3"
    with pytest.raises(ValueError):
        ContentLocator.parse("no-scheme")
