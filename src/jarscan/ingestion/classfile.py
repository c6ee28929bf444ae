"""Class-file header reader.

Reads the metadata a compiled Java class declares about itself (its name,
super class, interfaces and access flags) straight from the bytes, so no JVM
or class loading is involved. Only the part of the file up to the interface
table is parsed; fields, methods and attributes are ignored.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, Tuple

from jarscan.utils.text import package_of

MAGIC = 0xCAFEBABE

ACC_INTERFACE = 0x0200

_TAG_UTF8 = 1
_TAG_CLASS = 7

# Constant pool tags mapped to the size of their payload in bytes.
_FIXED_SIZES = {
    3: 4,  # Integer
    4: 4,  # Float
    5: 8,  # Long
    6: 8,  # Double
    7: 2,  # Class
    8: 2,  # String
    9: 4,  # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}
_WIDE_TAGS = {5, 6}


class ClassFormatError(ValueError):
    """Raised when bytes are not a readable class file."""


@dataclass(frozen=True, slots=True)
class ClassHeader:
    name: str
    super_name: str | None
    interfaces: Tuple[str, ...]
    access_flags: int
    major_version: int
    minor_version: int

    @property
    def package_name(self) -> str:
        return package_of(self.name)

    @property
    def is_interface(self) -> bool:
        return bool(self.access_flags & ACC_INTERFACE)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ClassFormatError(
                f"Truncated class file: needed {size} bytes at offset {self.offset}"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def u1(self) -> int:
        return self.take(1)[0]

    def u2(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def u4(self) -> int:
        return struct.unpack(">I", self.take(4))[0]


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the JVM's modified UTF-8.

    NUL is stored as ``C0 80`` and supplementary characters as surrogate pairs.
    """
    text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="surrogatepass")
    return text.encode("utf-16", errors="surrogatepass").decode("utf-16")


def _read_constant_pool(reader: _Reader) -> Tuple[Dict[int, str], Dict[int, int]]:
    """Return the UTF-8 constants and the Class constants (index -> name index)."""
    count = reader.u2()
    utf8: Dict[int, str] = {}
    classes: Dict[int, int] = {}

    index = 1
    while index < count:
        tag = reader.u1()
        if tag == _TAG_UTF8:
            length = reader.u2()
            try:
                utf8[index] = decode_modified_utf8(reader.take(length))
            except UnicodeError as exc:
                raise ClassFormatError(f"Invalid UTF-8 constant at index {index}") from exc
        elif tag == _TAG_CLASS:
            classes[index] = reader.u2()
        elif tag in _FIXED_SIZES:
            reader.take(_FIXED_SIZES[tag])
        else:
            raise ClassFormatError(f"Unknown constant pool tag {tag} at index {index}")
        index += 2 if tag in _WIDE_TAGS else 1

    return utf8, classes


def _class_name(index: int, utf8: Dict[int, str], classes: Dict[int, int]) -> str:
    if index not in classes or classes[index] not in utf8:
        raise ClassFormatError(f"Constant {index} is not a class reference")
    return utf8[classes[index]].replace("/", ".")


def parse_class_header(data: bytes) -> ClassHeader:
    """Parse the header of a class file.

    Raises:
        ClassFormatError: if the bytes do not start with a well-formed class file.
    """
    reader = _Reader(data)
    if reader.u4() != MAGIC:
        raise ClassFormatError("Bad magic number, not a class file")

    minor = reader.u2()
    major = reader.u2()
    utf8, classes = _read_constant_pool(reader)

    access_flags = reader.u2()
    this_class = reader.u2()
    super_class = reader.u2()
    interface_count = reader.u2()
    interfaces = tuple(
        _class_name(reader.u2(), utf8, classes) for _ in range(interface_count)
    )

    name = _class_name(this_class, utf8, classes)
    if not name:
        raise ClassFormatError("Class file declares an empty name")

    return ClassHeader(
        name=name,
        # java.lang.Object and module-info have no super class.
        super_name=_class_name(super_class, utf8, classes) if super_class else None,
        interfaces=interfaces,
        access_flags=access_flags,
        major_version=major,
        minor_version=minor,
    )
