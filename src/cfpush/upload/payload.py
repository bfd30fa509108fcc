"""Streaming upload payload - delta zip of the files the platform lacks.

Builds a zip archive holding every file of the artifact that is not in the
KnownResourceSet, preceded by the directory entries needed to reach it.

Requirements:
- Bounded memory: only entry descriptors are held; content is read in
  buffer-sized chunks and handed to the caller as soon as it is compressed
- No recompression of content that is already compressed
- Content is verified against the size (and, when known, the sha1) recorded
  in the fingerprint pass; any mismatch or read failure aborts the stream
- Every exit path (exhaustion, close, error) releases source handles
"""

from __future__ import annotations

import hashlib
import io
import logging
import stat
import zipfile
from collections.abc import Generator, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, BinaryIO

from cfpush.archive.errors import ArchiveReadError
from cfpush.archive.models import (
    DEFAULT_BUFFER_SIZE,
    READ_FAILURES,
    ArtifactEntry,
    ResourceDescriptor,
)
from cfpush.archive.reader import ArchiveReader
from cfpush.observability.tracing import traced_operation
from cfpush.upload.known_resources import KnownResourceSet

logger = logging.getLogger(__name__)

# Content in these formats is written ZIP_STORED.
ALREADY_COMPRESSED_SUFFIXES = frozenset(
    {
        ".jar",
        ".war",
        ".ear",
        ".zip",
        ".gz",
        ".tgz",
        ".bz2",
        ".xz",
        ".7z",
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".webp",
        ".woff",
        ".woff2",
    }
)

_ZIP_EPOCH = datetime(1980, 1, 1)
_ZIP_LATEST = datetime(2107, 12, 31, 23, 59, 58)
_MSDOS_DIRECTORY_FLAG = 0x10
_UNIX_CREATE_SYSTEM = 3


class _ChunkSink:
    """Write-only, non-seekable buffer handed to ZipFile.

    Without tell()/seek() ZipFile streams each entry with a data descriptor,
    so nothing already written ever has to be revisited.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        """Return and clear everything written since the last drain."""
        chunk = bytes(self._buffer)
        self._buffer.clear()
        return chunk


def _zip_date_time(modified: datetime) -> tuple[int, int, int, int, int, int]:
    """Clamp a timestamp to the DOS date range and return the ZipInfo tuple."""
    value = min(max(modified.replace(tzinfo=None), _ZIP_EPOCH), _ZIP_LATEST)
    return (value.year, value.month, value.day, value.hour, value.minute, value.second)


def _compression_for(entry: ArtifactEntry) -> int:
    """Pick the output compression method for a file entry."""
    if entry.compress_type == zipfile.ZIP_STORED:
        return zipfile.ZIP_STORED
    if PurePosixPath(entry.name).suffix.lower() in ALREADY_COMPRESSED_SUFFIXES:
        return zipfile.ZIP_STORED
    return zipfile.ZIP_DEFLATED


def _zip_info(entry: ArtifactEntry) -> zipfile.ZipInfo:
    """Build the output ZipInfo for an entry (timestamp and mode copied)."""
    info = zipfile.ZipInfo(entry.name, date_time=_zip_date_time(entry.modified))
    info.create_system = _UNIX_CREATE_SYSTEM
    if entry.is_directory:
        mode = entry.mode if entry.mode is not None else 0o755
        info.external_attr = ((stat.S_IFDIR | mode) << 16) | _MSDOS_DIRECTORY_FLAG
        info.compress_type = zipfile.ZIP_STORED
    else:
        mode = entry.mode if entry.mode is not None else 0o644
        info.external_attr = (stat.S_IFREG | mode) << 16
        info.compress_type = _compression_for(entry)
        info.file_size = entry.size_bytes
    return info


def _synthetic_directory(name: str, child: ArtifactEntry) -> ArtifactEntry:
    """Directory entry for a parent the source does not list explicitly."""
    return ArtifactEntry(
        name=name,
        is_directory=True,
        size_bytes=0,
        modified=child.modified,
        archive=child.archive,
    )


def _payload_attributes(payload: UploadPayload) -> dict[str, Any]:
    return {
        "file_count": payload.file_count,
        "directory_count": payload.directory_count,
        "total_uncompressed_size": payload.total_uncompressed_size,
    }


@dataclass(frozen=True)
class UploadPayload:
    """Delta zip of an artifact.

    Attributes:
        entries: Entries to write, in output order (directories before their
            descendants).
        total_uncompressed_size: Sum of file sizes over included files.
        expected_sha1: Fingerprinted hex digests by filename, used to verify
            streamed content.
        buffer_size: Read buffer size for entry content.
    """

    entries: tuple[ArtifactEntry, ...]
    total_uncompressed_size: int
    expected_sha1: dict[str, str] = field(default_factory=dict, repr=False)
    buffer_size: int = DEFAULT_BUFFER_SIZE

    @classmethod
    @traced_operation("payload_build", _payload_attributes)
    def build(
        cls,
        reader: ArchiveReader,
        known: KnownResourceSet,
        fingerprint: Iterable[ResourceDescriptor] | None = None,
        *,
        buffer_size: int | None = None,
    ) -> UploadPayload:
        """Select the entries to upload.

        Only descriptors are collected here; no entry content is read.

        Args:
            reader: Artifact reader (enumerated once more).
            known: Files the platform already holds.
            fingerprint: Optional fingerprint from the earlier pass. When
                given, streamed content must match its sha1 values.
            buffer_size: Read buffer size (defaults to the reader's).

        Returns:
            UploadPayload ready to be streamed.

        Raises:
            ArchiveReadError: If the artifact cannot be walked.
        """
        directories: dict[str, ArtifactEntry] = {}
        emitted: set[str] = set()
        selected: list[ArtifactEntry] = []
        total = 0
        skipped = 0

        for entry in reader.entries():
            if entry.is_directory:
                directories.setdefault(entry.name, entry)
                continue
            if entry.name in known:
                skipped += 1
                continue
            for parent in entry.parent_names:
                if parent not in emitted:
                    emitted.add(parent)
                    selected.append(directories.get(parent) or _synthetic_directory(parent, entry))
            selected.append(entry)
            total += entry.size_bytes

        expected: dict[str, str] = {}
        for d in fingerprint or ():
            expected.setdefault(d.filename, d.sha1)

        payload = cls(
            entries=tuple(selected),
            total_uncompressed_size=total,
            expected_sha1=expected,
            buffer_size=buffer_size if buffer_size is not None else reader.buffer_size,
        )
        logger.debug(
            "Payload for %s: %d files to upload (%d bytes), %d already known",
            reader.source,
            payload.file_count,
            total,
            skipped,
        )
        return payload

    @property
    def file_count(self) -> int:
        """Number of file entries in the payload."""
        return sum(1 for e in self.entries if not e.is_directory)

    @property
    def directory_count(self) -> int:
        """Number of directory entries in the payload."""
        return sum(1 for e in self.entries if e.is_directory)

    @property
    def filenames(self) -> list[str]:
        """Names of the file entries in output order."""
        return [e.name for e in self.entries if not e.is_directory]

    def iter_chunks(self) -> Generator[bytes, None, None]:
        """Produce the zip archive as a sequence of byte chunks.

        Each call starts a fresh archive and reopens entry content.

        Yields:
            Non-empty byte chunks which concatenate to a valid zip file.

        Raises:
            ArchiveReadError: If an entry cannot be read or no longer matches
                its fingerprint.
        """
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", allowZip64=True) as archive:  # type: ignore[arg-type]
            for entry in self.entries:
                if entry.is_directory:
                    archive.writestr(_zip_info(entry), b"")
                else:
                    yield from self._write_file(archive, sink, entry)
                chunk = sink.drain()
                if chunk:
                    yield chunk
        tail = sink.drain()
        if tail:
            yield tail

    def _write_file(
        self,
        archive: zipfile.ZipFile,
        sink: _ChunkSink,
        entry: ArtifactEntry,
    ) -> Generator[bytes, None, None]:
        digest = hashlib.sha1()
        written = 0
        try:
            with (
                entry.open_content_stream() as source,
                archive.open(_zip_info(entry), mode="w") as target,
            ):
                while True:
                    data = source.read(self.buffer_size)
                    if not data:
                        break
                    digest.update(data)
                    written += len(data)
                    target.write(data)
                    chunk = sink.drain()
                    if chunk:
                        yield chunk
        except READ_FAILURES as e:
            raise ArchiveReadError(
                message=f"Failed to read entry content: {e}",
                archive=entry.archive,
                entry_name=entry.name,
                cause=e,
            ) from e

        if written != entry.size_bytes:
            raise ArchiveReadError(
                message=(
                    f"Entry size changed since fingerprinting: "
                    f"expected {entry.size_bytes} bytes, read {written}"
                ),
                archive=entry.archive,
                entry_name=entry.name,
            )
        expected = self.expected_sha1.get(entry.name)
        if expected is not None and digest.hexdigest() != expected:
            raise ArchiveReadError(
                message="Entry content changed since fingerprinting",
                archive=entry.archive,
                entry_name=entry.name,
            )

    def open(self) -> PayloadStream:
        """Open the payload as a readable, non-seekable binary stream."""
        return PayloadStream(self.iter_chunks())

    def write_to(self, fileobj: BinaryIO) -> int:
        """Write the whole archive to fileobj.

        Returns:
            Number of bytes written.
        """
        written = 0
        for chunk in self.iter_chunks():
            fileobj.write(chunk)
            written += len(chunk)
        return written


class PayloadStream(io.RawIOBase):
    """File-like view over a payload's chunk generator.

    Suitable as a multipart file body. Closing the stream closes the
    generator, which releases whatever source handle it holds.
    """

    def __init__(self, chunks: Generator[bytes, None, None]) -> None:
        super().__init__()
        self._chunks = chunks
        self._pending = memoryview(b"")

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed payload stream")
        while not self._pending:
            try:
                self._pending = memoryview(next(self._chunks))
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._chunks.close()
            self._pending = memoryview(b"")
        super().close()
