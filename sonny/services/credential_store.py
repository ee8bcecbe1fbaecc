"""Per-user storage of delegated OAuth credentials."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol
from urllib.parse import urlencode

from sonny.core.errors import NotLinkedError
from sonny.models.oauth import CredentialRecord
from sonny.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Keyed store of credential records.

    ``put`` replaces the whole record for a user; ``get`` returns the current
    record or ``None``. Implementations never expose a partially written record.
    """

    def get(self, user_id: str) -> Optional[CredentialRecord]: ...

    def put(self, user_id: str, record: CredentialRecord) -> None: ...


class InMemoryCredentialStore:
    """Process-local store. Records are immutable, so swapping the dict entry
    under the lock is the whole commit."""

    def __init__(self) -> None:
        self._records: Dict[str, CredentialRecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._records.get(user_id)

    def put(self, user_id: str, record: CredentialRecord) -> None:
        if not isinstance(record, CredentialRecord):
            raise TypeError("record must be a CredentialRecord")
        with self._lock:
            self._records[user_id] = record

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SQLiteCredentialStore:
    """SQLite-backed store with tokens encrypted at rest.

    Each user owns one row written by a single upsert statement.
    """

    def __init__(self, db_path: str, *, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._cipher = cipher
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credentials (
                    user_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
                """
            )

    def get(self, user_id: str) -> Optional[CredentialRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM credentials WHERE user_id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        data = json.loads(row["data"])
        data["access_token"] = self._cipher.decrypt(data.pop("access_token_encrypted"))
        encrypted_refresh = data.pop("refresh_token_encrypted", None)
        data["refresh_token"] = (
            self._cipher.decrypt(encrypted_refresh) if encrypted_refresh else None
        )
        return CredentialRecord.model_validate(data)

    def put(self, user_id: str, record: CredentialRecord) -> None:
        data = record.model_dump(mode="json", exclude={"access_token", "refresh_token"})
        data["scope"] = sorted(record.scope)
        data["access_token_encrypted"] = self._cipher.encrypt(record.access_token)
        if record.refresh_token:
            data["refresh_token_encrypted"] = self._cipher.encrypt(record.refresh_token)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO credentials (user_id, data)
                VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET data = excluded.data
                """,
                (user_id, json.dumps(data)),
            )

    def rotate_encryption(self) -> int:
        """Re-encrypt every stored token under the cipher's current secret."""
        rotated = 0
        with self._connect() as conn:
            rows = conn.execute("SELECT user_id, data FROM credentials").fetchall()
            for row in rows:
                data = json.loads(row["data"])
                for field in ("access_token_encrypted", "refresh_token_encrypted"):
                    if data.get(field):
                        data[field] = self._cipher.rotate(data[field])
                conn.execute(
                    "UPDATE credentials SET data = ? WHERE user_id = ?",
                    (json.dumps(data), row["user_id"]),
                )
                rotated += 1
        logger.info("Re-encrypted credentials for %d users", rotated)
        return rotated


def link_hint(start_path: str, user_id: str) -> str:
    """Point a caller at the endpoint that starts account linking."""
    return f"{start_path}?{urlencode({'userId': user_id})}"


def require_active_credential(
    store: CredentialStore, user_id: str, *, start_path: str
) -> CredentialRecord:
    """Return a usable credential for ``user_id`` or raise ``NotLinkedError``.

    Expired records count as unlinked; refreshing them is not supported.
    """
    record = store.get(user_id) if user_id else None
    if record is None or not record.access_token:
        raise NotLinkedError(
            "Link your Google account before using this feature.",
            hint=link_hint(start_path, user_id),
        )
    if record.is_expired():
        raise NotLinkedError(
            "The linked Google account has expired; link it again.",
            hint=link_hint(start_path, user_id),
        )
    return record


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "SQLiteCredentialStore",
    "link_hint",
    "require_active_credential",
]
