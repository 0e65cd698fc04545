"""In-memory stand-ins for Tonie Cloud, its login realm and the upload bucket."""

from __future__ import annotations

import json
from itertools import count
from typing import Any
from urllib.parse import parse_qs

import httpx

from toniesync.clients.sqlite_store import RecordStore
from toniesync.clients.tonie_auth import TonieAuthClient
from toniesync.clients.tonie_cloud import TonieCloudClient
from toniesync.core.config import TonieCloudSettings
from toniesync.services.credential_vault import CredentialVault
from toniesync.services.credentials import CredentialService, CredentialStore
from toniesync.services.storage_providers import DatabaseStorageProvider, StorageProviderRegistry
from toniesync.services.sync_backends import CloudSyncBackend
from toniesync.services.sync_jobs import SyncJobStore, SyncOrchestrator

TOKEN_URL = "https://login.tonies.test/auth/realms/tonies/protocol/openid-connect/token"
API_BASE = "https://api.tonie.test/v2"
UPLOAD_URL = "https://bucket.s3.test/"


def make_tonie_settings(**overrides: Any) -> TonieCloudSettings:
    values = {"TONIE_TOKEN_URL": TOKEN_URL, "TONIE_API_BASE_URL": API_BASE}
    values.update(overrides)
    return TonieCloudSettings(**values)


def tonie_payload(tonie_id: str, household_id: str, name: str, chapters: list | None = None) -> dict:
    return {
        "id": tonie_id,
        "householdId": household_id,
        "name": name,
        "imageUrl": f"https://img.test/{tonie_id}.png",
        "secondsPresent": 0,
        "secondsRemaining": 5400,
        "chaptersPresent": len(chapters or []),
        "chaptersRemaining": 99 - len(chapters or []),
        "transcoding": False,
        "live": False,
        "private": False,
        "transcodingErrors": [],
        "chapters": list(chapters or []),
    }


class FakeTonieCloud:
    """Serve the login, API and presigned-upload endpoints from memory.

    Every request is recorded so tests can count outbound calls.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_expires_in = 3600
        self.upload_status = 204
        self.patch_status = 200
        self.upload_extra_fields: dict[str, str | None] = {}
        self.valid_tokens: set[str] = set()
        self.households: list[dict] = [
            {"id": "hh-1", "name": "Home", "access": "owner", "canLeave": False}
        ]
        self.tonies: dict[str, dict] = {"ct-1": tonie_payload("ct-1", "hh-1", "Kitchen")}
        self._ids = count(1)

    # ----------------------------------------------------------------- wiring

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    # ---------------------------------------------------------------- queries

    def calls(self, method: str, url_prefix: str = "") -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and str(request.url).startswith(url_prefix)
        ]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return self.calls("POST", TOKEN_URL)

    @property
    def upload_requests(self) -> list[httpx.Request]:
        return self.calls("POST", UPLOAD_URL)

    @property
    def patch_requests(self) -> list[httpx.Request]:
        return self.calls("PATCH", API_BASE)

    def chapter_titles(self, tonie_id: str) -> list[str]:
        return [chapter["title"] for chapter in self.tonies[tonie_id]["chapters"]]

    def add_chapter(self, tonie_id: str, title: str) -> dict:
        chapter = {
            "id": f"ch-{next(self._ids)}",
            "title": title,
            "seconds": 60.0,
            "file": f"file-existing-{title}",
            "transcoding": False,
        }
        self.tonies[tonie_id]["chapters"].append(chapter)
        return chapter

    # --------------------------------------------------------------- handlers

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == TOKEN_URL:
            return self._token(request)
        if url.startswith(UPLOAD_URL):
            body = "" if self.upload_status < 300 else "AccessDenied"
            return httpx.Response(self.upload_status, text=body)
        if url.startswith(API_BASE):
            return self._api(request, url[len(API_BASE):])
        return httpx.Response(404, text="unknown host")

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        if self.token_status != 200:
            return httpx.Response(self.token_status, text='{"error":"invalid_grant"}')
        token = f"token-{next(self._ids)}-{form['username']}"
        self.valid_tokens.add(token)
        return httpx.Response(
            200,
            json={
                "access_token": token,
                "expires_in": self.token_expires_in,
                "token_type": "Bearer",
            },
        )

    def _api(self, request: httpx.Request, path: str) -> httpx.Response:
        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if bearer not in self.valid_tokens:
            return httpx.Response(401, text="Unauthorized")

        parts = [part for part in path.split("/") if part]
        if request.method == "GET" and parts == ["households"]:
            return httpx.Response(200, json=self.households)
        if request.method == "POST" and parts == ["file"]:
            file_id = f"file-{next(self._ids)}"
            return httpx.Response(
                201,
                json={
                    "fileId": file_id,
                    "request": {
                        "url": UPLOAD_URL,
                        "fields": {
                            "key": file_id,
                            "x-amz-algorithm": "AWS4-HMAC-SHA256",
                            "x-amz-credential": "AKIA/20240101/eu-central-1/s3/aws4_request",
                            "x-amz-date": "20240101T000000Z",
                            "policy": "eyJwb2xpY3kiOnRydWV9",
                            "x-amz-signature": "deadbeef",
                            **self.upload_extra_fields,
                        },
                    },
                },
            )
        if len(parts) == 3 and parts[0] == "households" and parts[2] == "creativetonies":
            household_id = parts[1]
            tonies = [
                {**tonie, "chapters": []}
                for tonie in self.tonies.values()
                if tonie["householdId"] == household_id
            ]
            return httpx.Response(200, json=tonies)
        if len(parts) == 4 and parts[0] == "households" and parts[2] == "creativetonies":
            tonie = self.tonies.get(parts[3])
            if tonie is None or tonie["householdId"] != parts[1]:
                return httpx.Response(404, text="Not Found")
            if request.method == "GET":
                return httpx.Response(200, json=tonie)
            if request.method == "PATCH":
                return self._patch(tonie, json.loads(request.content))
        return httpx.Response(404, text="Not Found")

    def _patch(self, tonie: dict, body: dict) -> httpx.Response:
        if self.patch_status != 200:
            return httpx.Response(self.patch_status, text="patch failed")
        by_file = {chapter["file"]: chapter for chapter in tonie["chapters"]}
        chapters = []
        for entry in body["chapters"]:
            existing = by_file.get(entry["file"])
            if existing is not None:
                chapters.append({**existing, "title": entry["title"]})
                continue
            chapters.append(
                {
                    "id": f"ch-{next(self._ids)}",
                    "title": entry["title"],
                    "seconds": 0.0,
                    "file": entry["file"],
                    "transcoding": True,
                }
            )
        tonie["name"] = body["name"]
        tonie["chapters"] = chapters
        tonie["chaptersPresent"] = len(chapters)
        return httpx.Response(200, json=tonie)


class Harness:
    """The sync stack wired against ``FakeTonieCloud`` and a throwaway database."""

    owner_id = "user-1"
    username = "parent@example.com"
    password = "hunter2"

    def __init__(self, fake: FakeTonieCloud, db_path: str, *, backend: Any = None) -> None:
        settings = make_tonie_settings()
        http_client = fake.client()
        self.fake = fake
        self.auth = TonieAuthClient(settings, http_client=http_client)
        self.cloud = TonieCloudClient(settings, self.auth, http_client=http_client)
        self.records = RecordStore(db_path)
        self.jobs = SyncJobStore(db_path)
        self.vault = CredentialVault(secret="test-secret")
        self.credential_store = CredentialStore(db_path)
        self.credentials = CredentialService(
            store=self.credential_store,
            vault=self.vault,
            auth_client=self.auth,
            records=self.records,
        )
        self.blobs = DatabaseStorageProvider(db_path)
        self.storage = StorageProviderRegistry({self.blobs.kind: self.blobs})
        self.backend = backend or CloudSyncBackend(self.cloud, self.storage)
        self.orchestrator = SyncOrchestrator(
            records=self.records,
            jobs=self.jobs,
            backend=self.backend,
            credentials=self.credentials,
        )

        self.household = self.records.add_household(
            owner_id=self.owner_id, name="Home", external_id="hh-1"
        )
        self.device = self.records.add_device(
            household_id=self.household.id,
            name="Kitchen",
            remote_device_identifier="ct-1",
            cloud_origin=True,
        )

    def store_login(self) -> None:
        """Save the default login without a token round-trip."""
        self.credential_store.insert(
            owner_id=self.owner_id,
            username=self.username,
            encrypted_password=self.vault.protect(self.password),
            display_name="Parent",
        )

    async def add_content(self, title: str = "Bedtime Story", data: bytes = b"ID3-audio"):
        locator = await self.blobs.upload(
            data, file_name=f"{title}.mp3", content_type="audio/mpeg", owner_id=self.owner_id
        )
        return self.records.add_content(
            household_id=self.household.id, title=title, locator=locator
        )
