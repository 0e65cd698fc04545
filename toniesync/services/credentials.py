"""
Linked Tonie Cloud accounts: encrypted storage, default selection and unlinking.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from toniesync.clients.sqlite_store import RecordStore, SQLiteStore, parse_timestamp, utcnow_iso
from toniesync.clients.tonie_auth import TonieAuthClient
from toniesync.core.errors import InvalidArgument, NotFound
from toniesync.models.credential import TonieCredential
from toniesync.services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CloudLogin:
    """Decrypted username/password pair, held only for the length of a sync."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class UnlinkSummary:
    credential: TonieCredential
    households_deleted: int
    devices_deleted: int


class CredentialStore(SQLiteStore):
    """Credential rows; at most one default per owner, enforced by a partial index."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS tonie_credentials (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL,
            username TEXT NOT NULL,
            encrypted_password TEXT NOT NULL,
            display_name TEXT,
            is_default INTEGER NOT NULL DEFAULT 0,
            last_authenticated TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (owner_id, username)
        );
        CREATE UNIQUE INDEX IF NOT EXISTS ux_tonie_credentials_default
            ON tonie_credentials (owner_id) WHERE is_default = 1;
    """

    _COLUMNS = (
        "id, owner_id, username, encrypted_password, display_name, is_default, "
        "last_authenticated, created_at, updated_at"
    )

    @staticmethod
    def _row_to_model(row: sqlite3.Row) -> TonieCredential:
        data = dict(row)
        data["is_default"] = bool(data["is_default"])
        data["last_authenticated"] = parse_timestamp(data["last_authenticated"])
        data["created_at"] = parse_timestamp(data["created_at"])
        data["updated_at"] = parse_timestamp(data["updated_at"])
        return TonieCredential(**data)

    def insert(
        self,
        *,
        owner_id: str,
        username: str,
        encrypted_password: str,
        display_name: Optional[str],
    ) -> TonieCredential:
        """Store a credential; the owner's first one becomes the default."""
        now = utcnow_iso()
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO tonie_credentials (
                        owner_id, username, encrypted_password, display_name,
                        is_default, created_at, updated_at
                    )
                    SELECT ?, ?, ?, ?,
                           NOT EXISTS (
                               SELECT 1 FROM tonie_credentials
                               WHERE owner_id = ? AND is_default = 1
                           ),
                           ?, ?
                    """,
                    (owner_id, username, encrypted_password, display_name, owner_id, now, now),
                )
                credential_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise InvalidArgument(
                f"Tonie account {username} is already linked for this user."
            ) from exc
        return self.get(owner_id, credential_id)

    def get(self, owner_id: str, credential_id: int) -> TonieCredential:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {self._COLUMNS} FROM tonie_credentials WHERE owner_id = ? AND id = ?",
                (owner_id, credential_id),
            ).fetchone()
        if not row:
            raise NotFound(f"Tonie account {credential_id} not found.")
        return self._row_to_model(row)

    def list_for_owner(self, owner_id: str) -> List[TonieCredential]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM tonie_credentials WHERE owner_id = ? ORDER BY id",
                (owner_id,),
            ).fetchall()
        return [self._row_to_model(row) for row in rows]

    def get_default(self, owner_id: str) -> Optional[TonieCredential]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {self._COLUMNS} FROM tonie_credentials "
                "WHERE owner_id = ? AND is_default = 1",
                (owner_id,),
            ).fetchone()
        return self._row_to_model(row) if row else None

    def set_default(self, owner_id: str, credential_id: int) -> TonieCredential:
        now = utcnow_iso()
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM tonie_credentials WHERE owner_id = ? AND id = ?",
                (owner_id, credential_id),
            ).fetchone()
            if not exists:
                raise NotFound(f"Tonie account {credential_id} not found.")
            conn.execute(
                "UPDATE tonie_credentials SET is_default = 0, updated_at = ? "
                "WHERE owner_id = ? AND is_default = 1 AND id != ?",
                (now, owner_id, credential_id),
            )
            conn.execute(
                "UPDATE tonie_credentials SET is_default = 1, updated_at = ? WHERE id = ?",
                (now, credential_id),
            )
        return self.get(owner_id, credential_id)

    def delete(self, owner_id: str, credential_id: int) -> TonieCredential:
        """Delete a credential, promoting the oldest remaining one if it was the default."""
        credential = self.get(owner_id, credential_id)
        with self._connect() as conn:
            conn.execute("DELETE FROM tonie_credentials WHERE id = ?", (credential_id,))
            if credential.is_default:
                conn.execute(
                    """
                    UPDATE tonie_credentials SET is_default = 1, updated_at = ?
                    WHERE id = (
                        SELECT id FROM tonie_credentials WHERE owner_id = ? ORDER BY id LIMIT 1
                    )
                    """,
                    (utcnow_iso(), owner_id),
                )
        return credential

    def touch_last_authenticated(self, credential_id: int) -> None:
        now = utcnow_iso()
        with self._connect() as conn:
            conn.execute(
                "UPDATE tonie_credentials SET last_authenticated = ?, updated_at = ? WHERE id = ?",
                (now, now, credential_id),
            )


class CredentialService:
    """Link, select and unlink Tonie Cloud accounts for local users."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        vault: CredentialVault,
        auth_client: TonieAuthClient,
        records: RecordStore,
        touch_on_read: bool = True,
    ) -> None:
        self._store = store
        self._vault = vault
        self._auth = auth_client
        self._records = records
        self._touch_on_read = touch_on_read

    async def link_account(
        self,
        *,
        owner_id: str,
        username: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> TonieCredential:
        """Verify the login against Tonie Cloud, then store it encrypted."""
        if not owner_id:
            raise InvalidArgument("Owner id is required.")
        await self._auth.get_token(username, password)
        credential = self._store.insert(
            owner_id=owner_id,
            username=username,
            encrypted_password=self._vault.protect(password),
            display_name=display_name,
        )
        self._store.touch_last_authenticated(credential.id)
        logger.info(
            "Linked Tonie account",
            extra={"owner_id": owner_id, "credential_id": credential.id},
        )
        return self._store.get(owner_id, credential.id)

    def list_accounts(self, owner_id: str) -> List[TonieCredential]:
        return self._store.list_for_owner(owner_id)

    def set_default(self, owner_id: str, credential_id: int) -> TonieCredential:
        return self._store.set_default(owner_id, credential_id)

    def unlink_account(self, owner_id: str, credential_id: int) -> UnlinkSummary:
        """Remove the account, forget its token and drop everything mirrored from the cloud."""
        credential = self._store.delete(owner_id, credential_id)
        self._auth.invalidate(credential.username)
        households_deleted, devices_deleted = self._records.delete_cloud_records(owner_id)
        logger.info(
            "Unlinked Tonie account",
            extra={
                "owner_id": owner_id,
                "credential_id": credential_id,
                "households_deleted": households_deleted,
                "devices_deleted": devices_deleted,
            },
        )
        return UnlinkSummary(
            credential=credential,
            households_deleted=households_deleted,
            devices_deleted=devices_deleted,
        )

    def load_default(self, owner_id: str) -> CloudLogin:
        """Decrypt the owner's default login.

        With ``touch_on_read`` every load stamps ``last_authenticated``, read-only
        callers included.
        """
        credential = self._store.get_default(owner_id)
        if credential is None:
            raise NotFound(
                "No default Tonie Cloud account found. Please add a Tonie account first."
            )
        if self._touch_on_read:
            self._store.touch_last_authenticated(credential.id)
        password = self._vault.unprotect(credential.encrypted_password)
        return CloudLogin(username=credential.username, password=password)


__all__ = ["CloudLogin", "CredentialService", "CredentialStore", "UnlinkSummary"]
