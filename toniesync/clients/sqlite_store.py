"""SQLite-backed record storage for households, devices and content items."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from toniesync.core.errors import NotFound
from toniesync.models.records import ContentLocator, ContentRef, DeviceRef, HouseholdRecord


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteStore:
    """Shared connection handling; subclasses declare ``_SCHEMA``."""

    _SCHEMA: str = ""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self._db_path, check_same_thread=False)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn

    def _ensure_schema(self) -> None:
        if not self._SCHEMA:
            return
        with self._connect() as conn:
            conn.executescript(self._SCHEMA)


class RecordStore(SQLiteStore):
    """Households, devices and content items, local or mirrored from the cloud.

    A household with an ``external_id`` was mirrored from Tonie Cloud; devices
    flagged ``cloud_origin`` are Creative Tonies mirrored the same way.
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS households (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL,
            name TEXT NOT NULL,
            external_id TEXT,
            created_at TEXT NOT NULL,
            last_synced_at TEXT,
            UNIQUE (owner_id, external_id)
        );
        CREATE TABLE IF NOT EXISTS devices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            household_id INTEGER NOT NULL REFERENCES households (id),
            name TEXT NOT NULL,
            remote_device_identifier TEXT NOT NULL,
            cloud_origin INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            last_synced_at TEXT,
            UNIQUE (household_id, remote_device_identifier)
        );
        CREATE TABLE IF NOT EXISTS content_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            household_id INTEGER NOT NULL REFERENCES households (id),
            title TEXT NOT NULL,
            locator TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
    """

    _DEVICE_QUERY = """
        SELECT d.id, d.household_id, d.name, d.remote_device_identifier,
               h.external_id AS remote_household_identifier
        FROM devices d JOIN households h ON h.id = d.household_id
    """

    # -------------------------------------------------------------- households

    def add_household(
        self, *, owner_id: str, name: str, external_id: str | None = None
    ) -> HouseholdRecord:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO households (owner_id, name, external_id, created_at) "
                "VALUES (?, ?, ?, ?)",
                (owner_id, name, external_id, utcnow_iso()),
            )
            household_id = cursor.lastrowid
        return HouseholdRecord(
            id=household_id, owner_id=owner_id, name=name, external_id=external_id
        )

    def get_household(self, household_id: int) -> HouseholdRecord:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, owner_id, name, external_id FROM households WHERE id = ?",
                (household_id,),
            ).fetchone()
        if not row:
            raise NotFound(f"Household {household_id} not found.")
        return HouseholdRecord(**dict(row))

    def list_households(self, owner_id: str) -> List[HouseholdRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, owner_id, name, external_id FROM households "
                "WHERE owner_id = ? ORDER BY id",
                (owner_id,),
            ).fetchall()
        return [HouseholdRecord(**dict(row)) for row in rows]

    def upsert_cloud_household(
        self, *, owner_id: str, external_id: str, name: str
    ) -> HouseholdRecord:
        now = utcnow_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO households (owner_id, name, external_id, created_at, last_synced_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (owner_id, external_id) DO UPDATE SET
                    name = excluded.name,
                    last_synced_at = excluded.last_synced_at
                """,
                (owner_id, name, external_id, now, now),
            )
            row = conn.execute(
                "SELECT id, owner_id, name, external_id FROM households "
                "WHERE owner_id = ? AND external_id = ?",
                (owner_id, external_id),
            ).fetchone()
        return HouseholdRecord(**dict(row))

    # ----------------------------------------------------------------- devices

    def add_device(
        self,
        *,
        household_id: int,
        name: str,
        remote_device_identifier: str,
        cloud_origin: bool = False,
    ) -> DeviceRef:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO devices (household_id, name, remote_device_identifier, "
                "cloud_origin, created_at) VALUES (?, ?, ?, ?, ?)",
                (household_id, name, remote_device_identifier, int(cloud_origin), utcnow_iso()),
            )
            device_id = cursor.lastrowid
        return self.resolve_device(device_id)

    def upsert_cloud_device(
        self, *, household_id: int, remote_device_identifier: str, name: str
    ) -> DeviceRef:
        now = utcnow_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO devices (household_id, name, remote_device_identifier,
                                     cloud_origin, created_at, last_synced_at)
                VALUES (?, ?, ?, 1, ?, ?)
                ON CONFLICT (household_id, remote_device_identifier) DO UPDATE SET
                    name = excluded.name,
                    last_synced_at = excluded.last_synced_at
                """,
                (household_id, name, remote_device_identifier, now, now),
            )
            row = conn.execute(
                f"{self._DEVICE_QUERY} WHERE d.household_id = ? AND d.remote_device_identifier = ?",
                (household_id, remote_device_identifier),
            ).fetchone()
        return DeviceRef(**dict(row))

    def resolve_device(self, device_id: int) -> DeviceRef:
        with self._connect() as conn:
            row = conn.execute(f"{self._DEVICE_QUERY} WHERE d.id = ?", (device_id,)).fetchone()
        if not row:
            raise NotFound(f"Device {device_id} not found.")
        return DeviceRef(**dict(row))

    def list_devices(self, household_id: int) -> List[DeviceRef]:
        with self._connect() as conn:
            rows = conn.execute(
                f"{self._DEVICE_QUERY} WHERE d.household_id = ? ORDER BY d.id",
                (household_id,),
            ).fetchall()
        return [DeviceRef(**dict(row)) for row in rows]

    # ----------------------------------------------------------------- content

    def add_content(
        self, *, household_id: int, title: str, locator: ContentLocator
    ) -> ContentRef:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO content_items (household_id, title, locator, created_at) "
                "VALUES (?, ?, ?, ?)",
                (household_id, title, locator.uri, utcnow_iso()),
            )
            content_id = cursor.lastrowid
        return ContentRef(id=content_id, household_id=household_id, title=title, locator=locator)

    def resolve_content(self, content_id: int) -> ContentRef:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, household_id, title, locator FROM content_items WHERE id = ?",
                (content_id,),
            ).fetchone()
        if not row:
            raise NotFound(f"Content item {content_id} not found.")
        return ContentRef(
            id=row["id"],
            household_id=row["household_id"],
            title=row["title"],
            locator=ContentLocator.parse(row["locator"]),
        )

    # ------------------------------------------------------------------ unlink

    def delete_cloud_records(self, owner_id: str) -> Tuple[int, int]:
        """Remove everything mirrored from Tonie Cloud for ``owner_id``.

        Cloud-origin devices go; a cloud household goes only once nothing local
        is left in it, otherwise it is detached and kept as a local household.
        Returns ``(households_deleted, devices_deleted)``.
        """
        with self._connect() as conn:
            household_ids = [
                row["id"]
                for row in conn.execute(
                    "SELECT id FROM households WHERE owner_id = ? AND external_id IS NOT NULL",
                    (owner_id,),
                ).fetchall()
            ]
            devices_deleted = 0
            households_deleted = 0
            for household_id in household_ids:
                devices_deleted += conn.execute(
                    "DELETE FROM devices WHERE household_id = ? AND cloud_origin = 1",
                    (household_id,),
                ).rowcount
                remaining = conn.execute(
                    "SELECT (SELECT COUNT(*) FROM devices WHERE household_id = ?) "
                    "+ (SELECT COUNT(*) FROM content_items WHERE household_id = ?)",
                    (household_id, household_id),
                ).fetchone()[0]
                if remaining:
                    conn.execute(
                        "UPDATE households SET external_id = NULL WHERE id = ?",
                        (household_id,),
                    )
                    continue
                conn.execute("DELETE FROM households WHERE id = ?", (household_id,))
                households_deleted += 1
        return households_deleted, devices_deleted


__all__ = ["RecordStore", "SQLiteStore", "parse_timestamp", "utcnow_iso"]
