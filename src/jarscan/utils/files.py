"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator

from jarscan.models import ArchiveMetadata

JAR_SUFFIX = ".jar"


def iter_jar_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield jar paths from input paths, descending into directories.

    Anything that is not a directory is passed through as given, so a zip
    archive can be scanned by naming it directly and a missing path reaches
    the scanner, which reports it.
    """
    for item in inputs:
        if item.is_dir():
            yield from sorted(child for child in item.rglob(f"*{JAR_SUFFIX}") if child.is_file())
        else:
            yield item


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()


def describe_archive(path: Path) -> ArchiveMetadata:
    stat = path.stat()
    return ArchiveMetadata(
        path=path.resolve(),
        sha256=compute_sha256(path),
        mtime=stat.st_mtime,
        size=stat.st_size,
    )
