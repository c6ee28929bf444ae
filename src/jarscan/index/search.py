"""Filtering over the stored scan root."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from jarscan.index.storage import SQLiteClassStore
from jarscan.models import ClassRecord


@dataclass(slots=True)
class RecordFilter:
    package: str | None = None
    name_contains: str | None = None
    interfaces_only: bool = False

    def matches(self, record: ClassRecord) -> bool:
        if self.interfaces_only and not record.is_interface:
            return False
        if self.package is not None:
            package = record.package_name
            if package != self.package and not package.startswith(self.package + "."):
                return False
        if self.name_contains and self.name_contains.lower() not in record.name.lower():
            return False
        return True


def filter_records(records: Iterable[ClassRecord], record_filter: RecordFilter) -> List[ClassRecord]:
    return [record for record in records if record_filter.matches(record)]


class Searcher:
    """High-level API to query the stored root."""

    def __init__(self, store: SQLiteClassStore) -> None:
        self.store = store

    def search(self, record_filter: RecordFilter | None = None) -> List[ClassRecord]:
        records = self.store.load_root()
        if record_filter is None:
            return records
        return filter_records(records, record_filter)
