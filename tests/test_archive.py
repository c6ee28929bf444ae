"""Tests for jar archive scanning."""

from __future__ import annotations

import logging
import struct
import zipfile
import zlib
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import MANIFEST, build_class
from jarscan.ingestion.archive import (
    ArchiveOpenError,
    EntryReadError,
    _read_entry,
    build_record,
    iter_entry_results,
    scan,
)
from jarscan.ingestion.classfile import ClassFormatError
from jarscan.models import ClassRecord
from jarscan.utils.text import count_lines


class TestScan:
    """Test the record sequence produced for an archive."""

    def test_example_archive(self, acme_jar: Path) -> None:
        records = list(scan(acme_jar))

        assert records == [
            ClassRecord("com.acme.Widget", "com.acme", False, 50),
            ClassRecord("com.acme.Tool", "com.acme", True, 12),
        ]

    def test_scan_is_lazy(self, acme_jar: Path) -> None:
        records = scan(acme_jar)

        first = next(records)
        assert first.name == "com.acme.Widget"
        records.close()

    def test_scan_is_restartable_and_deterministic(self, acme_jar: Path) -> None:
        assert list(scan(acme_jar)) == list(scan(acme_jar))

    def test_archive_without_classes(self, make_jar) -> None:
        jar = make_jar("empty.jar", [MANIFEST, ("README.txt", b"hello\n")])

        assert list(scan(jar)) == []

    def test_empty_archive(self, make_jar) -> None:
        jar = make_jar("nothing.jar", [])

        assert list(scan(jar)) == []

    def test_directory_entries_are_skipped(self, make_jar) -> None:
        jar = make_jar(
            "dirs.jar",
            [("com/", b""), ("com/acme/", b""), ("com/acme/A.class", build_class("com/acme/A"))],
        )

        assert [record.name for record in scan(jar)] == ["com.acme.A"]

    def test_nested_and_default_package_classes(self, make_jar) -> None:
        jar = make_jar(
            "nested.jar",
            [
                ("Main.class", build_class("Main")),
                ("com/acme/Widget$Part.class", build_class("com/acme/Widget$Part")),
            ],
        )

        records = list(scan(jar))

        assert records[0].name == "Main"
        assert records[0].package_name == ""
        assert records[1].name == "com.acme.Widget$Part"
        assert records[1].package_name == "com.acme"

    def test_line_count_covers_whole_entry(self, make_jar) -> None:
        data = build_class("com/acme/Widget", body=b"one\r\ntwo\rthree\nfour")
        jar = make_jar("lines.jar", [("com/acme/Widget.class", data)])

        (record,) = scan(jar)

        assert record.line_count == count_lines(data) == 4

    def test_stored_entries(self, make_jar) -> None:
        jar = make_jar(
            "stored.jar",
            [("a/B.class", build_class("a/B"))],
            compression=zipfile.ZIP_STORED,
        )

        assert [record.name for record in scan(jar)] == ["a.B"]


class TestUnresolvableEntries:
    """Broken entries are skipped without stopping the scan."""

    def test_malformed_class_is_skipped(self, make_jar) -> None:
        jar = make_jar(
            "broken.jar",
            [
                ("com/acme/Broken.class", b"not a class file"),
                ("com/acme/Widget.class", build_class("com/acme/Widget")),
            ],
        )

        assert [record.name for record in scan(jar)] == ["com.acme.Widget"]

    def test_entry_results_report_failures(self, make_jar) -> None:
        jar = make_jar(
            "broken.jar",
            [
                ("com/acme/Broken.class", b"\xca\xfe\xba\xbe"),
                ("com/acme/Widget.class", build_class("com/acme/Widget")),
            ],
        )

        results = list(iter_entry_results(jar))

        assert [result.entry_name for result in results] == [
            "com/acme/Broken.class",
            "com/acme/Widget.class",
        ]
        assert not results[0].ok
        assert isinstance(results[0].error, ClassFormatError)
        assert results[1].ok
        assert results[1].record.name == "com.acme.Widget"

    def test_corrupted_entry_is_skipped(self, make_jar) -> None:
        jar = make_jar(
            "corrupt.jar",
            [
                ("a/Bad.class", build_class("a/Bad", body=b"PAYLOAD")),
                ("a/Good.class", build_class("a/Good")),
            ],
            compression=zipfile.ZIP_STORED,
        )
        raw = jar.read_bytes()
        assert raw.count(b"PAYLOAD") == 1
        jar.write_bytes(raw.replace(b"PAYLOAD", b"PAYLOAX"))

        results = list(iter_entry_results(jar))

        assert isinstance(results[0].error, EntryReadError)
        assert results[0].error.entry_name == "a/Bad.class"
        assert [result.record.name for result in results if result.ok] == ["a.Good"]

    def test_failures_are_logged(self, make_jar, caplog: pytest.LogCaptureFixture) -> None:
        jar = make_jar("broken.jar", [("x/Y.class", b"junk")])

        with caplog.at_level(logging.WARNING, logger="jarscan.ingestion.archive"):
            assert list(scan(jar)) == []

        assert "Skipping x/Y.class" in caplog.text

    @patch("jarscan.ingestion.archive._read_entry")
    def test_read_error_does_not_stop_scan(self, mock_read: MagicMock, make_jar) -> None:
        good = build_class("a/Good")
        jar = make_jar("two.jar", [("a/Bad.class", b""), ("a/Good.class", good)])
        mock_read.side_effect = [EntryReadError("a/Bad.class", "boom"), good]

        assert [record.name for record in scan(jar)] == ["a.Good"]


class TestFatalErrors:
    """Archives that cannot be opened stop the scan."""

    def test_missing_archive(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.jar"

        with pytest.raises(ArchiveOpenError, match="file not found") as excinfo:
            list(scan(missing))

        assert excinfo.value.path == missing

    def test_not_a_zip(self, tmp_path: Path) -> None:
        bogus = tmp_path / "bogus.jar"
        bogus.write_text("definitely not a zip")

        with pytest.raises(ArchiveOpenError, match="not a jar archive"):
            list(scan(bogus))

    def test_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveOpenError, match="not a regular file"):
            list(scan(tmp_path))

    def test_invalid_utf8_entry_name(self, make_jar) -> None:
        # Non-ASCII names are written with the UTF-8 flag set
        jar = make_jar("names.jar", [("a/é.class", build_class("a/E"))])
        jar.write_bytes(jar.read_bytes().replace("é".encode("utf-8"), b"\xff\xfe"))

        with pytest.raises(ArchiveOpenError, match="not a jar archive") as excinfo:
            list(scan(jar))

        assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)

    def test_unsupported_zip_version(self, make_jar) -> None:
        jar = make_jar("version.jar", [("a/E.class", build_class("a/E"))])
        data = bytearray(jar.read_bytes())
        central = data.index(b"PK\x01\x02")
        # "version needed to extract" of the central directory record
        data[central + 6 : central + 8] = struct.pack("<H", 108)
        jar.write_bytes(bytes(data))

        with pytest.raises(ArchiveOpenError, match="not a jar archive") as excinfo:
            list(scan(jar))

        assert isinstance(excinfo.value.__cause__, NotImplementedError)

    @pytest.mark.parametrize(
        "error",
        [NotImplementedError("zip file version 10.8"), ValueError("bad"), RuntimeError("bad")],
    )
    def test_format_errors_on_open(self, acme_jar: Path, error: Exception) -> None:
        with patch("jarscan.ingestion.archive.zipfile.ZipFile", side_effect=error):
            with pytest.raises(ArchiveOpenError, match="not a jar archive") as excinfo:
                list(scan(acme_jar))

        assert excinfo.value.__cause__ is error

    def test_no_records_before_error(self, tmp_path: Path) -> None:
        produced = []
        with pytest.raises(ArchiveOpenError):
            for record in scan(tmp_path / "missing.jar"):
                produced.append(record)

        assert produced == []


class TestReadEntry:
    """Test reading single entries."""

    @pytest.mark.parametrize(
        "error",
        [zlib.error("bad stream"), zipfile.BadZipFile("Bad CRC-32"), EOFError(), NotImplementedError("lzma")],
    )
    def test_read_failures_become_entry_errors(self, error: Exception) -> None:
        archive = MagicMock()
        archive.open.side_effect = error
        info = zipfile.ZipInfo("a/B.class")

        with pytest.raises(EntryReadError) as excinfo:
            _read_entry(archive, info)

        assert excinfo.value.entry_name == "a/B.class"
        assert excinfo.value.__cause__ is error


class TestBuildRecord:
    """Test record construction from entry bytes."""

    def test_declared_name_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        data = build_class("com/acme/Real")

        with caplog.at_level(logging.WARNING, logger="jarscan.ingestion.archive"):
            record = build_record("com/acme/Renamed.class", data)

        assert record.name == "com.acme.Real"
        assert "declares class com.acme.Real" in caplog.text

    def test_matching_name_logs_nothing(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="jarscan.ingestion.archive"):
            build_record("com/acme/Widget.class", build_class("com/acme/Widget"))

        assert caplog.text == ""
