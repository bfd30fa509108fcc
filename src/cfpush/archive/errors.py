"""cfpush archive error types.

Provides typed exceptions for artifact reading. All errors are fail-fast:
a walk, fingerprint or payload that cannot complete raises instead of
returning partial results.
"""

from __future__ import annotations


class ArchiveError(Exception):
    """Base exception for artifact operations.

    Attributes:
        message: Human-readable error message.
        archive: Artifact location (directory or archive file) if known.
        entry_name: Archive-relative entry name if the error concerns one entry.
    """

    def __init__(
        self,
        message: str,
        *,
        archive: str | None = None,
        entry_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.archive = archive
        self.entry_name = entry_name

    def __str__(self) -> str:
        parts = [self.message]
        if self.archive:
            parts.append(f"archive={self.archive}")
        if self.entry_name:
            parts.append(f"entry={self.entry_name}")
        return " ".join(parts)


class ArchiveReadError(ArchiveError):
    """Raised when an artifact or one of its entries cannot be read.

    Covers I/O failures while walking a directory tree, opening a source
    archive or reading entry content, and content that changed between the
    fingerprint pass and the payload pass.
    """

    def __init__(
        self,
        message: str = "Artifact read failed",
        *,
        archive: str | None = None,
        entry_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, archive=archive, entry_name=entry_name)
        self.cause = cause


class MalformedArchiveError(ArchiveError):
    """Raised when a source archive cannot be parsed as a zip file.

    Surfaced when the reader is constructed, before any entry is produced.
    """

    def __init__(
        self,
        message: str = "Malformed archive",
        *,
        archive: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, archive=archive)
        self.cause = cause
