"""Upload orchestrator - fingerprint, match, assemble, upload.

Sequences a delta upload of one application artifact:
1. Build the artifact fingerprint
2. Ask the platform which resources it already holds (restricted to the
   fingerprint so a stray match can never add files to the application)
3. Assemble the streaming delta payload
4. Upload the payload and follow the asynchronous job

Failures in steps 1-3 abort before anything is uploaded. Errors raised by
the collaborators propagate unchanged.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Protocol

from cfpush.archive.models import ResourceDescriptor
from cfpush.archive.reader import ArchiveReader
from cfpush.archive.registry import open_archive
from cfpush.archive.zip_reader import ZipArchiveReader
from cfpush.upload.callback import NullUploadStatusCallback, UploadStatusCallback
from cfpush.upload.fingerprint import build_fingerprint
from cfpush.upload.known_resources import KnownResourceSet
from cfpush.upload.payload import UploadPayload

if TYPE_CHECKING:
    from cfpush.client.models import UploadJob

logger = logging.getLogger(__name__)


class ResourceMatcher(Protocol):
    """Collaborator answering "which of these files do you already have?"."""

    def check_known_resources(self, descriptors: Sequence[ResourceDescriptor]) -> KnownResourceSet:
        ...


class BitsUploader(Protocol):
    """Collaborator uploading the payload and reporting job status."""

    def upload_bits(
        self,
        app_guid: str,
        payload: UploadPayload,
        known: KnownResourceSet,
    ) -> UploadJob:
        ...

    def watch_job(self, job: UploadJob) -> Iterator[str]:
        ...


@dataclass(frozen=True)
class UploadOutcome:
    """Result of an upload.

    Attributes:
        app_guid: Target application GUID.
        job: Job returned by the bits upload.
        last_status: Last job status delivered to the callback.
        unsubscribed: True if the callback stopped status updates early.
        matched_count: Number of files reused from the platform cache.
        uploaded_file_count: Number of files sent in the payload.
        total_uncompressed_size: Uncompressed size of the uploaded files.
    """

    app_guid: str
    job: UploadJob
    last_status: str | None
    unsubscribed: bool
    matched_count: int
    uploaded_file_count: int
    total_uncompressed_size: int


class ApplicationUploader:
    """Delta upload of application artifacts."""

    def __init__(self, matcher: ResourceMatcher, uploader: BitsUploader) -> None:
        """Initialize the orchestrator.

        Args:
            matcher: Resource match collaborator.
            uploader: Bits upload collaborator.
        """
        self._matcher = matcher
        self._uploader = uploader

    def upload(
        self,
        app_guid: str,
        reader: ArchiveReader,
        callback: UploadStatusCallback | None = None,
    ) -> UploadOutcome:
        """Upload an opened artifact.

        Args:
            app_guid: Target application GUID.
            reader: Artifact reader (not closed by this method).
            callback: Progress receiver; None means no notifications.

        Returns:
            UploadOutcome summarizing the upload.

        Raises:
            ArchiveReadError: If the artifact cannot be read.
            MalformedArchiveError: If the artifact is not a valid archive.
            Exception: Whatever the collaborators raise, unchanged.
        """
        if callback is None:
            callback = NullUploadStatusCallback()

        fingerprint = build_fingerprint(reader)

        known = self._matcher.check_known_resources(fingerprint).restricted_to(fingerprint)
        callback.on_check_resources()
        callback.on_matched_file_names(known.filenames)

        payload = UploadPayload.build(reader, known, fingerprint)
        callback.on_process_matched_resources(payload.total_uncompressed_size)

        logger.info(
            "Uploading app %s: %d files (%d bytes), %d reused",
            app_guid,
            payload.file_count,
            payload.total_uncompressed_size,
            len(known),
        )
        job = self._uploader.upload_bits(app_guid, payload, known)

        last_status: str | None = None
        unsubscribed = False
        statuses = self._uploader.watch_job(job)
        try:
            for status in statuses:
                last_status = status
                if callback.on_progress(status):
                    unsubscribed = True
                    break
        finally:
            close = getattr(statuses, "close", None)
            if close is not None:
                close()

        return UploadOutcome(
            app_guid=app_guid,
            job=job,
            last_status=last_status,
            unsubscribed=unsubscribed,
            matched_count=len(known),
            uploaded_file_count=payload.file_count,
            total_uncompressed_size=payload.total_uncompressed_size,
        )

    def upload_path(
        self,
        app_guid: str,
        path: str | Path,
        callback: UploadStatusCallback | None = None,
        *,
        buffer_size: int | None = None,
    ) -> UploadOutcome:
        """Upload a directory or archive file."""
        with open_archive(path, buffer_size=buffer_size) as reader:
            return self.upload(app_guid, reader, callback)

    def upload_stream(
        self,
        app_guid: str,
        fileobj: BinaryIO,
        callback: UploadStatusCallback | None = None,
    ) -> UploadOutcome:
        """Upload a zip archive supplied as a binary stream.

        The stream is spooled to a temporary file (zip members are read by
        offset), which is removed afterwards.
        """
        with tempfile.TemporaryDirectory(prefix="cfpush_upload_") as tmpdir:
            spooled = Path(tmpdir) / "application.zip"
            with open(spooled, "wb") as out:
                shutil.copyfileobj(fileobj, out)
            with ZipArchiveReader(spooled) as reader:
                return self.upload(app_guid, reader, callback)
