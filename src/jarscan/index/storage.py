"""SQLite persistence for the scan root."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Union

from jarscan.models import ArchiveMetadata, ClassRecord

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Ok:
    ok = True


@dataclass(frozen=True, slots=True)
class PersistenceFailed:
    error: str
    ok = False


PersistenceResult = Union[Ok, PersistenceFailed]


class SQLiteClassStore:
    """Persistence gateway holding one root collection of class records.

    ``flush`` and ``shutdown`` never raise: failures come back as
    :class:`PersistenceFailed` and are logged.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS classes (
                    id INTEGER PRIMARY KEY,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    package_name TEXT NOT NULL,
                    is_interface INTEGER NOT NULL,
                    line_count INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_classes_position
                    ON classes(position)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS archives (
                    id INTEGER PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    sha256 TEXT NOT NULL,
                    mtime REAL NOT NULL,
                    size INTEGER NOT NULL,
                    scanned_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def flush(self, root: Iterable[ClassRecord]) -> PersistenceResult:
        """Replace the stored root with ``root`` and commit."""
        rows = [
            (position, record.name, record.package_name, int(record.is_interface), record.line_count)
            for position, record in enumerate(root)
        ]
        try:
            with self.transaction() as conn:
                conn.execute("DELETE FROM classes")
                conn.executemany(
                    """
                    INSERT INTO classes(position, name, package_name, is_interface, line_count)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            LOGGER.error("Failed to store root in %s: %s", self.db_path, exc)
            return PersistenceFailed(str(exc))
        LOGGER.debug("Stored %d records in %s", len(rows), self.db_path)
        return Ok()

    def shutdown(self) -> PersistenceResult:
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            LOGGER.error("Failed to shut down store %s: %s", self.db_path, exc)
            return PersistenceFailed(str(exc))
        return Ok()

    def load_root(self) -> List[ClassRecord]:
        rows = self._conn.execute(
            """
            SELECT name, package_name, is_interface, line_count
            FROM classes
            ORDER BY position
            """
        ).fetchall()
        return [
            ClassRecord(
                name=row["name"],
                package_name=row["package_name"],
                is_interface=bool(row["is_interface"]),
                line_count=row["line_count"],
            )
            for row in rows
        ]

    def record_archive(self, archive: ArchiveMetadata) -> PersistenceResult:
        """Remember that ``archive`` was scanned, refreshing an earlier entry for the same path."""
        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO archives(path, sha256, mtime, size)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(path) DO UPDATE SET
                        sha256 = excluded.sha256,
                        mtime = excluded.mtime,
                        size = excluded.size,
                        scanned_at = CURRENT_TIMESTAMP
                    """,
                    (str(archive.path), archive.sha256, archive.mtime, archive.size),
                )
        except sqlite3.Error as exc:
            LOGGER.error("Failed to record archive %s: %s", archive.path, exc)
            return PersistenceFailed(str(exc))
        return Ok()

    def list_archives(self) -> List[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT path, sha256, mtime, size, scanned_at FROM archives ORDER BY scanned_at DESC, id DESC"
        ).fetchall()
        return [dict(row) for row in rows]

    def get_stats(self) -> dict[str, int]:
        row = self._conn.execute(
            """
            SELECT
                COUNT(*) AS class_count,
                COALESCE(SUM(is_interface), 0) AS interface_count,
                COALESCE(SUM(line_count), 0) AS total_lines
            FROM classes
            """
        ).fetchone()
        archive_count = self._conn.execute("SELECT COUNT(*) FROM archives").fetchone()[0]
        return {
            "class_count": row["class_count"],
            "interface_count": row["interface_count"],
            "total_lines": row["total_lines"],
            "archive_count": archive_count,
        }
