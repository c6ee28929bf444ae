"""Text helpers for class names and raw entry content."""

from __future__ import annotations

CLASS_SUFFIX = ".class"


def count_lines(data: bytes) -> int:
    """Count lines in raw bytes read as text.

    A line ends at ``\\n``, ``\\r\\n`` or a lone ``\\r``. A trailing segment with
    no terminator counts as one more line, so ``b"a\\nb"`` has two lines and
    ``b""`` has none.
    """
    if not data:
        return 0

    crlf = data.count(b"\r\n")
    count = data.count(b"\n") + data.count(b"\r") - crlf
    if not data.endswith((b"\n", b"\r")):
        count += 1
    return count


def entry_to_class_name(entry_name: str) -> str:
    """Turn an archive entry path such as ``com/acme/Widget.class`` into a dotted name."""
    name = entry_name
    if name.endswith(CLASS_SUFFIX):
        name = name[: -len(CLASS_SUFFIX)]
    return name.replace("/", ".")


def package_of(class_name: str) -> str:
    """Return the package part of a dotted class name, ``""`` for the default package."""
    package, _, _ = class_name.rpartition(".")
    return package
