"""SQLite catalog of content records and their file entries.

Two tables: ``magnets`` keyed by content identifier and ``files`` keyed by a
surrogate id, with ``(magnet_id, file_path)`` unique and rows cascading away
with their owning record.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable

from magnetdav.models import CatalogStats, ContentRecord, ContentStatus, FileEntry
from magnetdav.utils.exceptions import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS magnets (
        id TEXT PRIMARY KEY,
        magnet_uri TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        total_size INTEGER NOT NULL DEFAULT 0,
        file_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        error TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL,
        last_accessed REAL NOT NULL,
        access_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        magnet_id TEXT NOT NULL REFERENCES magnets(id) ON DELETE CASCADE,
        file_path TEXT NOT NULL,
        file_name TEXT NOT NULL,
        file_size INTEGER NOT NULL DEFAULT 0,
        file_index INTEGER NOT NULL DEFAULT 0,
        mime_type TEXT NOT NULL,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL,
        UNIQUE (magnet_id, file_path)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_magnets_status ON magnets(status)",
    "CREATE INDEX IF NOT EXISTS idx_magnets_last_accessed ON magnets(last_accessed)",
    "CREATE INDEX IF NOT EXISTS idx_files_magnet ON files(magnet_id, file_index)",
)

_RECORD_COLUMNS = (
    "id, magnet_uri, name, total_size, file_count, status, error, "
    "created_at, updated_at, last_accessed, access_count"
)
_FILE_COLUMNS = (
    "id, magnet_id, file_path, file_name, file_size, file_index, mime_type, "
    "created_at, updated_at"
)


def _record_from_row(row: sqlite3.Row) -> ContentRecord:
    return ContentRecord(**dict(row))


def _file_from_row(row: sqlite3.Row) -> FileEntry:
    return FileEntry(**dict(row))


class Catalog:
    """Persistent catalog backed by a single SQLite connection.

    Methods are coroutines so callers stay agnostic of the storage backend;
    each statement is short and runs on the event loop thread.

    Attributes:
        path: database file, or ``":memory:"``
        db: SQLite connection

    """

    def __init__(self, path: Path | str = ":memory:"):
        self.path = str(path)
        try:
            self.db = self._init_database()
        except (sqlite3.Error, OSError) as e:
            msg = f"Failed to open catalog at {self.path}"
            raise PersistenceError(msg, {"error": str(e)}) from e

    def _init_database(self) -> sqlite3.Connection:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        db = sqlite3.connect(self.path, check_same_thread=False)
        db.row_factory = sqlite3.Row
        db.execute("PRAGMA foreign_keys = ON")
        for statement in _SCHEMA:
            db.execute(statement)
        cursor = db.execute("SELECT MAX(version) FROM schema_version")
        current = cursor.fetchone()[0]
        if current is None:
            db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        db.commit()
        logger.debug("Catalog opened at %s (schema v%s)", self.path, SCHEMA_VERSION)
        return db

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            cursor = self.db.execute(sql, tuple(params))
            self.db.commit()
        except sqlite3.Error as e:
            self.db.rollback()
            raise PersistenceError(str(e), {"sql": sql.split()[0]}) from e
        return cursor

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self.db.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(str(e), {"sql": sql.split()[0]}) from e

    # Content records

    async def create_record(self, record: ContentRecord) -> bool:
        """Insert ``record`` unless its identifier exists.

        Returns:
            True when this call inserted the row

        """
        cursor = self._execute(
            f"INSERT OR IGNORE INTO magnets ({_RECORD_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.magnet_uri,
                record.name,
                record.total_size,
                record.file_count,
                record.status.value,
                record.error,
                record.created_at,
                record.updated_at,
                record.last_accessed,
                record.access_count,
            ),
        )
        return cursor.rowcount == 1

    async def get_record(self, identifier: str) -> ContentRecord | None:
        rows = self._query(
            f"SELECT {_RECORD_COLUMNS} FROM magnets WHERE id = ?", (identifier,)
        )
        return _record_from_row(rows[0]) if rows else None

    async def list_records(self) -> list[ContentRecord]:
        """All records, most recently accessed first."""
        rows = self._query(
            f"SELECT {_RECORD_COLUMNS} FROM magnets ORDER BY last_accessed DESC, id"
        )
        return [_record_from_row(row) for row in rows]

    async def list_records_by_status(self, status: ContentStatus) -> list[ContentRecord]:
        rows = self._query(
            f"SELECT {_RECORD_COLUMNS} FROM magnets WHERE status = ? ORDER BY created_at",
            (status.value,),
        )
        return [_record_from_row(row) for row in rows]

    async def mark_ready(
        self, identifier: str, name: str, total_size: int, file_count: int
    ) -> None:
        """Store the swarm summary and flip the record to ``ready``."""
        self._execute(
            "UPDATE magnets SET name = ?, total_size = ?, file_count = ?, "
            "status = ?, error = NULL, updated_at = ? WHERE id = ?",
            (
                name,
                total_size,
                file_count,
                ContentStatus.READY.value,
                time.time(),
                identifier,
            ),
        )

    async def set_status(
        self, identifier: str, status: ContentStatus, error: str | None = None
    ) -> None:
        self._execute(
            "UPDATE magnets SET status = ?, error = ?, updated_at = ? WHERE id = ?",
            (status.value, error, time.time(), identifier),
        )

    async def touch_access(self, identifier: str) -> None:
        self._execute(
            "UPDATE magnets SET access_count = access_count + 1, last_accessed = ? "
            "WHERE id = ?",
            (time.time(), identifier),
        )

    async def delete_record(self, identifier: str) -> bool:
        """Delete a record; its file entries cascade."""
        cursor = self._execute("DELETE FROM magnets WHERE id = ?", (identifier,))
        return cursor.rowcount > 0

    # File entries

    async def list_files(self, identifier: str) -> list[FileEntry]:
        """File entries of ``identifier`` ordered by positional index."""
        rows = self._query(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE magnet_id = ? "
            "ORDER BY file_index, id",
            (identifier,),
        )
        return [_file_from_row(row) for row in rows]

    async def insert_files(self, entries: list[FileEntry]) -> None:
        """Bulk insert in a single transaction."""
        if not entries:
            return
        now = time.time()
        try:
            with self.db:
                self.db.executemany(
                    "INSERT INTO files (magnet_id, file_path, file_name, file_size, "
                    "file_index, mime_type, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            e.magnet_id,
                            e.file_path,
                            e.file_name,
                            e.file_size,
                            e.file_index,
                            e.mime_type,
                            now,
                            now,
                        )
                        for e in entries
                    ],
                )
        except sqlite3.Error as e:
            msg = f"Failed to insert {len(entries)} file entries"
            raise PersistenceError(msg, {"error": str(e)}) from e

    async def update_file(self, entry: FileEntry) -> None:
        if entry.id is None:
            msg = f"Cannot update unsaved file entry {entry.file_path}"
            raise PersistenceError(msg)
        self._execute(
            "UPDATE files SET file_size = ?, file_index = ?, mime_type = ?, "
            "updated_at = ? WHERE id = ?",
            (entry.file_size, entry.file_index, entry.mime_type, time.time(), entry.id),
        )

    async def delete_files(self, ids: Iterable[int]) -> int:
        """Bulk delete by surrogate id; returns the number of rows removed."""
        id_list = list(ids)
        if not id_list:
            return 0
        placeholders = ", ".join("?" for _ in id_list)
        cursor = self._execute(f"DELETE FROM files WHERE id IN ({placeholders})", id_list)
        return cursor.rowcount

    async def stats(self) -> CatalogStats:
        magnets = self._query("SELECT COUNT(*) FROM magnets")[0][0]
        files = self._query("SELECT COUNT(*) FROM files")[0][0]
        return CatalogStats(total_magnets=magnets, total_files=files)

    async def close(self) -> None:
        if self.db:
            self.db.close()

    async def __aenter__(self) -> Catalog:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
