"""Scan session: the displayed collection and the scan/persist loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from jarscan.index.storage import PersistenceFailed, PersistenceResult, SQLiteClassStore
from jarscan.ingestion.archive import iter_entry_results
from jarscan.models import ClassRecord, ScanRoot
from jarscan.utils.files import describe_archive

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanStats:
    added: int = 0
    failed: int = 0
    persistence_failures: int = 0
    last_persistence_error: str | None = None
    failed_entries: list[str] = field(default_factory=list)

    def note_persistence(self, result: PersistenceResult) -> None:
        if isinstance(result, PersistenceFailed):
            self.persistence_failures += 1
            self.last_persistence_error = result.error


class ScanSession:
    """Coordinates archive scanning and persistence of the scan root."""

    def __init__(
        self,
        store: SQLiteClassStore,
        *,
        flush_every: int = 1,
        root: ScanRoot | None = None,
    ) -> None:
        if flush_every < 1:
            raise ValueError("flush_every must be at least 1")
        self.store = store
        self.flush_every = flush_every
        self.root = root if root is not None else ScanRoot(store.load_root())

    def scan(self, path: Path) -> ScanStats:
        """Scan one archive, appending each resolved class to the root.

        With the default ``flush_every=1`` every record is stored before the
        next entry is read.

        Raises:
            ArchiveOpenError: if the archive cannot be opened.
        """
        path = Path(path)
        stats = ScanStats()
        pending = 0

        for result in iter_entry_results(path):
            if result.record is None:
                stats.failed += 1
                stats.failed_entries.append(result.entry_name)
                continue

            self.root.append(result.record)
            stats.added += 1
            pending += 1
            if pending >= self.flush_every:
                stats.note_persistence(self.flush())
                pending = 0

        if pending:
            stats.note_persistence(self.flush())

        stats.note_persistence(self.store.record_archive(describe_archive(path)))
        LOGGER.info(
            "Scanned %s: %d classes added, %d entries skipped", path.name, stats.added, stats.failed
        )
        return stats

    def flush(self) -> PersistenceResult:
        result = self.store.flush(self.root)
        if isinstance(result, PersistenceFailed):
            LOGGER.warning("Scan root not persisted: %s", result.error)
        return result

    def remove(self, record: ClassRecord) -> bool:
        """Remove ``record`` from the session and the stored root. Never raises."""
        if not self.root.remove(record):
            return False
        self.flush()
        return True

    def remove_by_name(self, name: str) -> int:
        matches = [record for record in self.root if record.name == name]
        for record in matches:
            self.root.remove(record)
        if matches:
            self.flush()
        return len(matches)

    def clear(self) -> int:
        removed = len(self.root)
        self.root.clear()
        self.flush()
        return removed

    def close(self) -> PersistenceResult:
        return self.store.shutdown()
