"""Tests for ApplicationUploader with in-memory collaborators."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from cfpush.archive import ArchiveReadError, DirectoryArchiveReader, ResourceDescriptor
from cfpush.client import JobStatus, UploadJob
from cfpush.upload import (
    ApplicationUploader,
    KnownResourceSet,
    LoggingUploadStatusCallback,
    NullUploadStatusCallback,
    UploadPayload,
    UploadStatusCallback,
)
from tests.fixtures.artifacts import APP_JAR, sha1_hex


class FakeMatcher:
    """Resource matcher answering from a fixed list of descriptors."""

    def __init__(self, matches: list[dict[str, Any]] | None = None) -> None:
        self.matches = matches or []
        self.calls: list[list[ResourceDescriptor]] = []

    def check_known_resources(self, descriptors: Sequence[ResourceDescriptor]) -> KnownResourceSet:
        self.calls.append(list(descriptors))
        return KnownResourceSet.from_wire(self.matches)


class FakeUploader:
    """Bits uploader that captures the zip and replays a status sequence."""

    def __init__(self, statuses: list[str] | None = None) -> None:
        self.statuses = statuses if statuses is not None else ["queued", "running", "finished"]
        self.uploaded: bytes | None = None
        self.known: KnownResourceSet | None = None
        self.watch_closed = False

    def upload_bits(
        self,
        app_guid: str,
        payload: UploadPayload,
        known: KnownResourceSet,
    ) -> UploadJob:
        with payload.open() as stream:
            self.uploaded = stream.read()
        self.known = known
        return UploadJob(guid="job-1", url="/v2/jobs/job-1", status=JobStatus.QUEUED)

    def watch_job(self, job: UploadJob) -> Iterator[str]:
        try:
            yield from self.statuses
        finally:
            self.watch_closed = True


class RecordingCallback:
    """Callback recording every notification in order."""

    def __init__(self, stop_on: str | None = None) -> None:
        self.events: list[tuple[str, Any]] = []
        self.stop_on = stop_on

    def on_check_resources(self) -> None:
        self.events.append(("check", None))

    def on_matched_file_names(self, matched_file_names: frozenset[str]) -> None:
        self.events.append(("matched", matched_file_names))

    def on_process_matched_resources(self, length: int) -> None:
        self.events.append(("length", length))

    def on_progress(self, status: str) -> bool:
        self.events.append(("progress", status))
        return status == self.stop_on


APP_JAR_MATCH = {"fn": "app.jar", "size": 1000, "sha1": sha1_hex(APP_JAR)}


class TestUpload:
    """Tests for the end-to-end upload sequence."""

    def test_callback_sequence(self, app_dir: Path) -> None:
        uploader = ApplicationUploader(FakeMatcher([APP_JAR_MATCH]), FakeUploader())
        callback = RecordingCallback()

        outcome = uploader.upload_path("app-guid", app_dir, callback)

        assert [name for name, _ in callback.events] == [
            "check",
            "matched",
            "length",
            "progress",
            "progress",
            "progress",
        ]
        assert callback.events[1] == ("matched", frozenset({"app.jar"}))
        assert outcome.last_status == "finished"
        assert outcome.unsubscribed is False

    def test_known_files_not_uploaded(self, app_dir: Path) -> None:
        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(FakeMatcher([APP_JAR_MATCH]), fake_uploader)

        outcome = uploader.upload_path("app-guid", app_dir)

        assert fake_uploader.uploaded is not None
        with zipfile.ZipFile(io.BytesIO(fake_uploader.uploaded)) as zf:
            assert "app.jar" not in zf.namelist()
            assert "lib/util.jar" in zf.namelist()
        assert outcome.matched_count == 1
        assert outcome.uploaded_file_count == 2
        assert fake_uploader.known is not None
        assert fake_uploader.known.to_wire() == [APP_JAR_MATCH]

    def test_fingerprint_sent_to_matcher(self, app_dir: Path) -> None:
        matcher = FakeMatcher()
        uploader = ApplicationUploader(matcher, FakeUploader())

        uploader.upload_path("app-guid", app_dir)

        assert len(matcher.calls) == 1
        assert [d.filename for d in matcher.calls[0]] == [
            "WEB-INF/web.xml",
            "app.jar",
            "lib/util.jar",
        ]

    def test_stray_matches_are_ignored(self, app_dir: Path) -> None:
        stray = {"fn": "not/in/app.jar", "size": 5, "sha1": "e" * 40}
        wrong_sha = {"fn": "lib/util.jar", "size": 200, "sha1": "0" * 40}
        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(
            FakeMatcher([APP_JAR_MATCH, stray, wrong_sha]), fake_uploader
        )
        callback = RecordingCallback()

        outcome = uploader.upload_path("app-guid", app_dir, callback)

        assert callback.events[1] == ("matched", frozenset({"app.jar"}))
        assert outcome.matched_count == 1
        assert fake_uploader.uploaded is not None
        with zipfile.ZipFile(io.BytesIO(fake_uploader.uploaded)) as zf:
            assert "lib/util.jar" in zf.namelist()

    def test_unsubscribe_stops_updates(self, app_dir: Path) -> None:
        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(FakeMatcher(), fake_uploader)
        callback = RecordingCallback(stop_on="queued")

        outcome = uploader.upload_path("app-guid", app_dir, callback)

        assert [e for e in callback.events if e[0] == "progress"] == [("progress", "queued")]
        assert outcome.unsubscribed is True
        assert outcome.last_status == "queued"
        assert fake_uploader.watch_closed is True

    def test_failed_job_reported(self, app_dir: Path) -> None:
        uploader = ApplicationUploader(FakeMatcher(), FakeUploader(["queued", "failed"]))

        outcome = uploader.upload_path("app-guid", app_dir, RecordingCallback())

        assert outcome.last_status == "failed"

    def test_length_reports_uncompressed_payload_size(self, app_dir: Path) -> None:
        uploader = ApplicationUploader(FakeMatcher([APP_JAR_MATCH]), FakeUploader())
        callback = RecordingCallback()

        outcome = uploader.upload_path("app-guid", app_dir, callback)

        assert ("length", outcome.total_uncompressed_size) in callback.events
        assert outcome.total_uncompressed_size > 0

    def test_default_callback_is_silent(self, app_dir: Path) -> None:
        uploader = ApplicationUploader(FakeMatcher(), FakeUploader())

        outcome = uploader.upload("app-guid", DirectoryArchiveReader(app_dir))

        assert outcome.last_status == "finished"

    def test_null_callback_satisfies_protocol(self) -> None:
        assert isinstance(NullUploadStatusCallback(), UploadStatusCallback)
        assert isinstance(RecordingCallback(), UploadStatusCallback)


class TestFailures:
    """Tests for errors aborting the upload."""

    def test_read_error_before_upload(self, tmp_path: Path) -> None:
        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(FakeMatcher(), fake_uploader)

        with pytest.raises(ArchiveReadError):
            uploader.upload_path("app-guid", tmp_path / "missing")

        assert fake_uploader.uploaded is None

    def test_matcher_error_propagates(self, app_dir: Path) -> None:
        class BrokenMatcher:
            def check_known_resources(
                self, descriptors: Sequence[ResourceDescriptor]
            ) -> KnownResourceSet:
                raise RuntimeError("matcher down")

        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(BrokenMatcher(), fake_uploader)
        callback = RecordingCallback()

        with pytest.raises(RuntimeError, match="matcher down"):
            uploader.upload_path("app-guid", app_dir, callback)

        assert callback.events == []
        assert fake_uploader.uploaded is None


class TestUploadStream:
    """Tests for uploading a zip supplied as a stream."""

    def test_stream_is_spooled_and_uploaded(self, app_zip: Path) -> None:
        fake_uploader = FakeUploader()
        uploader = ApplicationUploader(FakeMatcher([APP_JAR_MATCH]), fake_uploader)

        with open(app_zip, "rb") as f:
            outcome = uploader.upload_stream("app-guid", f)

        assert outcome.matched_count == 1
        assert fake_uploader.uploaded is not None
        with zipfile.ZipFile(io.BytesIO(fake_uploader.uploaded)) as zf:
            assert sorted(zf.namelist()) == [
                "WEB-INF/",
                "WEB-INF/web.xml",
                "lib/",
                "lib/util.jar",
            ]


class TestLoggingCallback:
    """Tests for LoggingUploadStatusCallback."""

    def test_logs_each_notification(
        self, app_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        uploader = ApplicationUploader(FakeMatcher([APP_JAR_MATCH]), FakeUploader())

        with caplog.at_level(logging.INFO, logger="cfpush"):
            outcome = uploader.upload_path("app-guid", app_dir, LoggingUploadStatusCallback())

        assert outcome.unsubscribed is False
        assert "1 files already present" in caplog.text
        assert "Upload job status: finished" in caplog.text
