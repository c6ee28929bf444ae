"""Jar archive scanning.

Walks the entries of a jar (zip) archive in order and turns every compiled
class into a :class:`ClassRecord`. A broken entry is logged and skipped; only
an archive that cannot be opened at all stops the scan.
"""

from __future__ import annotations

import logging
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from jarscan.ingestion.classfile import ClassFormatError, parse_class_header
from jarscan.models import ClassRecord
from jarscan.utils.text import CLASS_SUFFIX, count_lines, entry_to_class_name

LOGGER = logging.getLogger(__name__)

# zipfile raises NotImplementedError for unsupported compression methods and
# RuntimeError for encrypted entries opened without a password.
_ENTRY_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    OSError,
    EOFError,
    NotImplementedError,
    RuntimeError,
)

# A corrupt central directory can also surface as NotImplementedError (bad
# version field), UnicodeDecodeError (bad UTF-8 name) or RuntimeError.
_ARCHIVE_FORMAT_ERRORS = (
    zipfile.BadZipFile,
    NotImplementedError,
    ValueError,
    RuntimeError,
)


class ArchiveOpenError(Exception):
    """The archive could not be opened, nothing was scanned."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot open archive {path}: {reason}")
        self.path = path
        self.reason = reason


class EntryReadError(Exception):
    """The bytes of a single archive entry could not be read."""

    def __init__(self, entry_name: str, reason: str) -> None:
        super().__init__(f"Cannot read entry {entry_name}: {reason}")
        self.entry_name = entry_name
        self.reason = reason


@dataclass(slots=True)
class EntryResult:
    """Outcome of one class-file entry: either a record or the error that skipped it."""

    entry_name: str
    record: ClassRecord | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def _open_archive(path: Path) -> zipfile.ZipFile:
    if not path.exists():
        raise ArchiveOpenError(path, "file not found")
    if not path.is_file():
        raise ArchiveOpenError(path, "not a regular file")
    try:
        return zipfile.ZipFile(path)
    except _ARCHIVE_FORMAT_ERRORS as exc:
        raise ArchiveOpenError(path, f"not a jar archive ({exc})") from exc
    except OSError as exc:
        raise ArchiveOpenError(path, str(exc)) from exc


def _read_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
    try:
        with archive.open(info) as handle:
            return handle.read()
    except _ENTRY_READ_ERRORS as exc:
        raise EntryReadError(info.filename, str(exc) or type(exc).__name__) from exc


def build_record(entry_name: str, data: bytes) -> ClassRecord:
    """Build a record from the raw bytes of one class-file entry.

    The bytes are read once; the header is parsed from them and the lines are
    counted over the same buffer.
    """
    header = parse_class_header(data)
    derived = entry_to_class_name(entry_name)
    if header.name != derived:
        LOGGER.warning(
            "Entry %s declares class %s, using the declared name", entry_name, header.name
        )
    return ClassRecord(
        name=header.name,
        package_name=header.package_name,
        is_interface=header.is_interface,
        line_count=count_lines(data),
    )


def iter_entry_results(path: Path) -> Iterator[EntryResult]:
    """Yield one result per class-file entry of the archive at ``path``.

    Raises:
        ArchiveOpenError: on the first iteration if the archive cannot be opened.
    """
    path = Path(path)
    LOGGER.info("Processing archive %s", path.name)

    with _open_archive(path) as archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.endswith(CLASS_SUFFIX):
                continue

            try:
                data = _read_entry(archive, info)
                record = build_record(info.filename, data)
            except (EntryReadError, ClassFormatError) as exc:
                LOGGER.warning("Skipping %s: %s", info.filename, exc)
                yield EntryResult(info.filename, error=exc)
                continue

            LOGGER.debug("Resolved %s", record.name)
            yield EntryResult(info.filename, record=record)


def scan(path: Path) -> Iterator[ClassRecord]:
    """Lazily yield a record for every class in the archive that could be resolved."""
    for result in iter_entry_results(path):
        if result.record is not None:
            yield result.record
