"""
Sync job persistence and the orchestrator that drives one sync attempt.

A job is created ``Pending``, moves to ``InProgress`` when work starts and
always ends ``Completed`` or ``Failed``. Terminal jobs are never updated; a
retry is a new job.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import List, Optional

from toniesync.clients.sqlite_store import RecordStore, SQLiteStore, parse_timestamp, utcnow_iso
from toniesync.core.errors import Cancelled, InvalidArgument, NotFound, TonieSyncError
from toniesync.models.records import DeviceRef
from toniesync.models.sync_job import SyncJob, SyncStatus, can_transition
from toniesync.schemas.tonie import SyncResult
from toniesync.services.credentials import CredentialService
from toniesync.services.sync_backends import SyncBackend, Track

logger = logging.getLogger(__name__)


class SyncJobStore(SQLiteStore):
    """SQLite-backed sync job history."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS sync_jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            household_id INTEGER NOT NULL,
            device_id INTEGER NOT NULL,
            content_id INTEGER,
            requested_by TEXT,
            status TEXT NOT NULL,
            job_type TEXT NOT NULL,
            error_message TEXT,
            created_at TEXT NOT NULL,
            started_at TEXT,
            completed_at TEXT
        );
        CREATE INDEX IF NOT EXISTS ix_sync_jobs_household
            ON sync_jobs (household_id, created_at);
    """

    _COLUMNS = (
        "id, household_id, device_id, content_id, requested_by, status, job_type, "
        "error_message, created_at, started_at, completed_at"
    )

    @staticmethod
    def _row_to_model(row: sqlite3.Row) -> SyncJob:
        data = dict(row)
        data["status"] = SyncStatus(data["status"])
        for key in ("created_at", "started_at", "completed_at"):
            data[key] = parse_timestamp(data[key])
        return SyncJob(**data)

    def create(
        self,
        *,
        household_id: int,
        device_id: int,
        content_id: Optional[int],
        requested_by: Optional[str],
        job_type: str = "Upload",
    ) -> SyncJob:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO sync_jobs (
                    household_id, device_id, content_id, requested_by,
                    status, job_type, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    household_id,
                    device_id,
                    content_id,
                    requested_by,
                    SyncStatus.PENDING.value,
                    job_type,
                    utcnow_iso(),
                ),
            )
            job_id = cursor.lastrowid
        return self.get(job_id)

    def get(self, job_id: int) -> SyncJob:
        job = self.find(job_id)
        if job is None:
            raise NotFound(f"Sync job {job_id} not found.")
        return job

    def find(self, job_id: int) -> Optional[SyncJob]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {self._COLUMNS} FROM sync_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return self._row_to_model(row) if row else None

    def list_for_household(self, household_id: int, limit: int) -> List[SyncJob]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM sync_jobs WHERE household_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (household_id, limit),
            ).fetchall()
        return [self._row_to_model(row) for row in rows]

    def transition(
        self,
        job_id: int,
        target: SyncStatus,
        *,
        error_message: Optional[str] = None,
    ) -> SyncJob:
        """Move a job to ``target``, stamping started/completed times.

        Raises ``InvalidArgument`` for transitions the state machine forbids,
        which includes any update to a terminal job.
        """
        now = utcnow_iso()
        with self._connect() as conn:
            row = conn.execute("SELECT status FROM sync_jobs WHERE id = ?", (job_id,)).fetchone()
            if not row:
                raise NotFound(f"Sync job {job_id} not found.")
            current = SyncStatus(row["status"])
            if not can_transition(current, target):
                raise InvalidArgument(
                    f"Sync job {job_id} cannot move from {current.value} to {target.value}."
                )
            if target is SyncStatus.IN_PROGRESS:
                conn.execute(
                    "UPDATE sync_jobs SET status = ?, started_at = ? WHERE id = ?",
                    (target.value, now, job_id),
                )
            else:
                conn.execute(
                    "UPDATE sync_jobs SET status = ?, error_message = ?, completed_at = ? "
                    "WHERE id = ?",
                    (target.value, error_message, now, job_id),
                )
        return self.get(job_id)


class SyncOrchestrator:
    """Run one sync attempt end to end and record its outcome as a job."""

    def __init__(
        self,
        *,
        records: RecordStore,
        jobs: SyncJobStore,
        backend: SyncBackend,
        credentials: CredentialService | None = None,
        default_list_limit: int = 50,
    ) -> None:
        self._records = records
        self._jobs = jobs
        self._backend = backend
        self._credentials = credentials
        self._default_list_limit = default_list_limit

    async def execute_sync(
        self,
        device_id: int,
        content_id: int,
        requested_by: str,
        *,
        timeout: float | None = None,
    ) -> SyncJob:
        """Push one content item to one device.

        Unknown device or content raises ``NotFound`` before any job is
        recorded. Every other failure ends in a ``Failed`` job; task
        cancellation also fails the job and then propagates.
        """
        device = self._records.resolve_device(device_id)
        content = self._records.resolve_content(content_id)

        job = self._jobs.create(
            household_id=device.household_id,
            device_id=device.id,
            content_id=content.id,
            requested_by=requested_by,
        )
        log_extra = {"job_id": job.id, "device_id": device.id, "content_id": content.id}
        logger.info("Sync job created", extra=log_extra)

        try:
            self._jobs.transition(job.id, SyncStatus.IN_PROGRESS)
            tracks = [Track(title=content.title, locator=content.locator)]
            work = self._run(device, tracks, requested_by)
            if timeout is None:
                result = await work
            else:
                result = await asyncio.wait_for(work, timeout)
        except asyncio.CancelledError:
            self._fail(job.id, str(Cancelled("Sync cancelled before completion.")))
            logger.warning("Sync job cancelled", extra=log_extra)
            raise
        except asyncio.TimeoutError:
            if timeout is None:
                logger.exception("Sync job crashed", extra=log_extra)
                return self._fail(job.id, "Remote call timed out.")
            logger.warning("Sync job timed out", extra={**log_extra, "timeout": timeout})
            return self._fail(
                job.id, str(Cancelled(f"Sync cancelled: timed out after {timeout:g}s."))
            )
        except TonieSyncError as exc:
            logger.warning("Sync job failed", extra={**log_extra, "error": str(exc)})
            return self._fail(job.id, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Sync job crashed", extra=log_extra)
            return self._fail(job.id, str(exc) or exc.__class__.__name__)

        if result.success:
            logger.info(
                "Sync job completed",
                extra={**log_extra, "tracks_processed": result.tracks_processed},
            )
            return self._jobs.transition(job.id, SyncStatus.COMPLETED)

        error_message = result.error_details or result.message or "Sync failed."
        logger.warning("Sync job failed", extra={**log_extra, "error": error_message})
        return self._fail(job.id, error_message)

    def get_job(self, job_id: int) -> Optional[SyncJob]:
        return self._jobs.find(job_id)

    def list_jobs(self, household_id: int, limit: int | None = None) -> List[SyncJob]:
        """Jobs for a household, most recent first."""
        limit = self._default_list_limit if limit is None else limit
        if limit <= 0:
            raise InvalidArgument("Limit must be positive.")
        return self._jobs.list_for_household(household_id, limit)

    async def _run(
        self, device: DeviceRef, tracks: List[Track], requested_by: str
    ) -> SyncResult:
        login = None
        if self._backend.requires_login:
            if self._credentials is None:
                raise InvalidArgument("Cloud sync requires a credential service.")
            login = self._credentials.load_default(requested_by)
        return await self._backend.sync(device, tracks, login)

    def _fail(self, job_id: int, error_message: str) -> SyncJob:
        return self._jobs.transition(job_id, SyncStatus.FAILED, error_message=error_message)


__all__ = ["SyncJobStore", "SyncOrchestrator"]
