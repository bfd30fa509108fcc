"""Tests for fingerprint building.

- One {fn, size, sha1} record per file, directories excluded
- Deterministic serialization over an unmodified artifact
- Content addressing: identical bytes give identical sha1 regardless of name
- Read failures abort the whole fingerprint
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cfpush.archive import (
    ArchiveReadError,
    DirectoryArchiveReader,
    ResourceDescriptor,
    ZipArchiveReader,
)
from cfpush.upload import build_fingerprint, fingerprint_to_json, fingerprint_to_wire
from tests.fixtures.artifacts import APP_JAR, UTIL_JAR, WEB_XML, sha1_hex


class TestBuildFingerprint:
    """Tests for build_fingerprint()."""

    def test_directory_artifact(self, app_dir: Path) -> None:
        descriptors = build_fingerprint(DirectoryArchiveReader(app_dir))

        assert fingerprint_to_wire(descriptors) == [
            {"fn": "WEB-INF/web.xml", "size": len(WEB_XML), "sha1": sha1_hex(WEB_XML)},
            {"fn": "app.jar", "size": 1000, "sha1": sha1_hex(APP_JAR)},
            {"fn": "lib/util.jar", "size": 200, "sha1": sha1_hex(UTIL_JAR)},
        ]

    def test_zip_artifact_excludes_directories(self, app_zip: Path) -> None:
        with ZipArchiveReader(app_zip) as reader:
            descriptors = build_fingerprint(reader)

        assert [d.filename for d in descriptors] == ["app.jar", "lib/util.jar", "WEB-INF/web.xml"]

    def test_directory_and_zip_agree_on_records(self, app_dir: Path, app_zip: Path) -> None:
        from_dir = build_fingerprint(DirectoryArchiveReader(app_dir))
        with ZipArchiveReader(app_zip) as reader:
            from_zip = build_fingerprint(reader)

        assert sorted(fingerprint_to_wire(from_dir), key=lambda d: d["fn"]) == sorted(
            fingerprint_to_wire(from_zip), key=lambda d: d["fn"]
        )

    def test_serialization_is_deterministic(self, app_dir: Path) -> None:
        reader = DirectoryArchiveReader(app_dir)

        first = fingerprint_to_json(build_fingerprint(reader))
        second = fingerprint_to_json(build_fingerprint(reader))

        assert first == second

    def test_identical_content_gives_identical_sha1(self, tmp_path: Path) -> None:
        (tmp_path / "a.bin").write_bytes(b"same bytes")
        (tmp_path / "b.bin").write_bytes(b"same bytes")

        a, b = build_fingerprint(DirectoryArchiveReader(tmp_path))

        assert a.sha1 == b.sha1
        assert a.filename != b.filename

    def test_empty_file(self, tmp_path: Path) -> None:
        (tmp_path / "empty.txt").write_bytes(b"")

        (descriptor,) = build_fingerprint(DirectoryArchiveReader(tmp_path))

        assert descriptor.size == 0
        assert descriptor.sha1 == "da39a3ee5e6b4b0d3255bfef95601890afd80709"

    def test_empty_artifact(self, tmp_path: Path) -> None:
        assert build_fingerprint(DirectoryArchiveReader(tmp_path)) == []

    def test_unreadable_file_aborts(self, app_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        reader = DirectoryArchiveReader(app_dir)
        entries = list(reader.entries())
        broken = next(e for e in entries if e.name == "lib/util.jar")
        (app_dir / "lib" / "util.jar").unlink()
        monkeypatch.setattr(reader, "entries", lambda: iter(entries))

        with pytest.raises(ArchiveReadError) as exc_info:
            build_fingerprint(reader)

        assert exc_info.value.entry_name == broken.name


class TestWireFormat:
    """Tests for fingerprint serialization."""

    def test_json_is_compact_with_fixed_key_order(self) -> None:
        descriptor = ResourceDescriptor(filename="a.txt", size=3, sha1="A" * 40)

        text = fingerprint_to_json([descriptor])

        assert text == '[{"fn":"a.txt","size":3,"sha1":"' + "a" * 40 + '"}]'

    def test_descriptor_parses_wire_alias(self) -> None:
        descriptor = ResourceDescriptor.model_validate(
            {"fn": "x/y.class", "size": 10, "sha1": "0" * 40}
        )

        assert descriptor.filename == "x/y.class"
        assert json.loads(fingerprint_to_json([descriptor]))[0]["fn"] == "x/y.class"

    def test_descriptor_rejects_bad_sha1(self) -> None:
        with pytest.raises(ValueError):
            ResourceDescriptor(filename="a", size=1, sha1="not-a-digest")

    def test_descriptor_rejects_negative_size(self) -> None:
        with pytest.raises(ValueError):
            ResourceDescriptor(filename="a", size=-1, sha1="0" * 40)
