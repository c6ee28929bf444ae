"""Shared fixtures: real class-file bytes and jar archives built on the fly."""

from __future__ import annotations

import os
import struct
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Sequence, Tuple

import pytest

# Rich wraps output at 80 columns when not attached to a terminal; long tmp paths
# would split asserted messages across lines.
os.environ.setdefault("COLUMNS", "200")

MANIFEST = ("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\r\nCreated-By: tests\r\n\r\n")


def build_class(
    name: str,
    *,
    interface: bool = False,
    access_flags: int | None = None,
    super_name: str | None = "java/lang/Object",
    interfaces: Sequence[str] = (),
    major: int = 52,
    body: bytes = b"",
) -> bytes:
    """Assemble a minimal class file declaring ``name`` (slash separated), followed by ``body``."""
    pool: list[bytes] = []

    def utf8(value: str) -> int:
        raw = value.encode("utf-8")
        pool.append(b"\x01" + struct.pack(">H", len(raw)) + raw)
        return len(pool)

    def class_ref(value: str) -> int:
        name_index = utf8(value)
        pool.append(b"\x07" + struct.pack(">H", name_index))
        return len(pool)

    this_index = class_ref(name)
    super_index = class_ref(super_name) if super_name else 0
    interface_indexes = [class_ref(item) for item in interfaces]

    if access_flags is None:
        # ACC_PUBLIC|ACC_INTERFACE|ACC_ABSTRACT or ACC_PUBLIC|ACC_SUPER
        access_flags = 0x0601 if interface else 0x0021

    return (
        struct.pack(">IHHH", 0xCAFEBABE, 0, major, len(pool) + 1)
        + b"".join(pool)
        + struct.pack(">HHHH", access_flags, this_index, super_index, len(interface_indexes))
        + b"".join(struct.pack(">H", index) for index in interface_indexes)
        + struct.pack(">HHH", 0, 0, 0)
        + body
    )


def write_jar(
    path: Path,
    entries: Iterable[Tuple[str, bytes]],
    *,
    compression: int = zipfile.ZIP_DEFLATED,
) -> Path:
    with zipfile.ZipFile(path, "w", compression=compression) as archive:
        for entry_name, data in entries:
            archive.writestr(entry_name, data)
    return path


@pytest.fixture
def class_bytes() -> Callable[..., bytes]:
    return build_class


@pytest.fixture
def make_jar(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str, entries: Iterable[Tuple[str, bytes]], **kwargs) -> Path:
        return write_jar(tmp_path / name, entries, **kwargs)

    return _make


@pytest.fixture
def acme_jar(make_jar) -> Path:
    """Widget (50 lines), the Tool interface (12 lines) and a manifest.

    No header byte of Widget is a line terminator, so its 50 newlines give 50
    lines. Tool's name is 13 bytes long and its length byte 0x0D is a lone
    carriage return, which ends the first line; 11 newlines give the other 11.
    """
    return make_jar(
        "acme.jar",
        [
            ("com/acme/Widget.class", build_class("com/acme/Widget", body=b"\n" * 50)),
            ("com/acme/Tool.class", build_class("com/acme/Tool", interface=True, body=b"\n" * 11)),
            MANIFEST,
        ],
    )
