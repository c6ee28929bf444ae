"""Core JarScan data models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple


@dataclass(frozen=True, slots=True)
class ClassRecord:
    """Facts about one compiled class found in an archive."""

    name: str
    package_name: str
    is_interface: bool
    line_count: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Class name must not be empty")
        if self.line_count < 0:
            raise ValueError(f"Line count must be non-negative, got {self.line_count}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "package_name": self.package_name,
            "is_interface": self.is_interface,
            "line_count": self.line_count,
        }


@dataclass(slots=True)
class ArchiveMetadata:
    """Minimal metadata describing a scanned archive."""

    path: Path
    sha256: str
    mtime: float
    size: int


class ScanRoot:
    """Ordered collection of records accumulated across scans.

    This is the object handed to the persistence layer on every flush, and the
    collection a display binds to.
    """

    def __init__(self, records: Iterable[ClassRecord] = ()) -> None:
        self._records: List[ClassRecord] = list(records)

    def append(self, record: ClassRecord) -> None:
        self._records.append(record)

    def remove(self, record: ClassRecord) -> bool:
        """Remove the first record equal to ``record``; return whether one was found."""
        try:
            self._records.remove(record)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._records.clear()

    def snapshot(self) -> Tuple[ClassRecord, ...]:
        return tuple(self._records)

    def __iter__(self) -> Iterator[ClassRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> ClassRecord:
        return self._records[index]

    def __repr__(self) -> str:
        return f"ScanRoot({len(self._records)} records)"
