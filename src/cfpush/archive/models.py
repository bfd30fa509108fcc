"""cfpush artifact data models.

Provides the uniform entry view over an application artifact and the
wire-level fingerprint record sent to the control plane.
"""

from __future__ import annotations

import hashlib
import zipfile
import zlib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any, BinaryIO

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cfpush.archive.errors import ArchiveReadError

DEFAULT_BUFFER_SIZE = 16 * 1024

# Exceptions that mean "entry content could not be read" across both sources.
READ_FAILURES: tuple[type[Exception], ...] = (OSError, EOFError, zipfile.BadZipFile, zlib.error)


@dataclass(frozen=True, eq=False)
class ArtifactEntry:
    """One logical file or directory inside an application artifact.

    Attributes:
        name: Archive-relative, slash-separated path. Directory names end
            with "/".
        is_directory: True for directory entries.
        size_bytes: Uncompressed content size (0 for directories).
        modified: Source modification time, copied into the upload zip.
        mode: POSIX permission bits when the source records them.
        compress_type: Compression method of the member in a source archive,
            None for filesystem entries.
        archive: Artifact location, used for error context.
    """

    name: str
    is_directory: bool
    size_bytes: int
    modified: datetime
    mode: int | None = None
    compress_type: int | None = None
    archive: str | None = None
    opener: Callable[[], BinaryIO] | None = field(default=None, repr=False)
    buffer_size: int = field(default=DEFAULT_BUFFER_SIZE, repr=False)

    def open_content_stream(self) -> BinaryIO:
        """Open a readable byte stream over the raw uncompressed content.

        Raises:
            ValueError: If called on a directory entry.
            ArchiveReadError: If the content is not accessible.
        """
        if self.is_directory or self.opener is None:
            raise ValueError(f"Directory entry has no content: {self.name}")
        return self.opener()

    @cached_property
    def sha1(self) -> bytes | None:
        """SHA-1 digest of the content, computed on first access."""
        if self.is_directory:
            return None
        digest = hashlib.sha1()
        try:
            with self.open_content_stream() as stream:
                while True:
                    chunk = stream.read(self.buffer_size)
                    if not chunk:
                        break
                    digest.update(chunk)
        except READ_FAILURES as e:
            raise ArchiveReadError(
                message=f"Failed to read entry content: {e}",
                archive=self.archive,
                entry_name=self.name,
                cause=e,
            ) from e
        return digest.digest()

    @property
    def sha1_hex(self) -> str | None:
        """Lowercase hex form of the content digest."""
        value = self.sha1
        return value.hex() if value is not None else None

    @property
    def parent_names(self) -> list[str]:
        """Names of all ancestor directories, outermost first ("a/", "a/b/")."""
        segments = self.name.rstrip("/").split("/")[:-1]
        return ["/".join(segments[: i + 1]) + "/" for i in range(len(segments))]


class ResourceDescriptor(BaseModel):
    """Fingerprint record for one file of an artifact.

    Serialized as ``{"fn": ..., "size": ..., "sha1": ...}`` for the
    resource match endpoint.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    filename: str = Field(alias="fn", min_length=1)
    size: int = Field(ge=0)
    sha1: str = Field(pattern=r"^[0-9a-f]{40}$")

    @field_validator("sha1", mode="before")
    @classmethod
    def _lowercase_sha1(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_entry(cls, entry: ArtifactEntry) -> ResourceDescriptor:
        """Build the descriptor for a non-directory entry."""
        if entry.is_directory:
            raise ValueError(f"Directories are not fingerprinted: {entry.name}")
        return cls(filename=entry.name, size=entry.size_bytes, sha1=entry.sha1_hex)

    def to_wire(self) -> dict[str, Any]:
        """Convert to the JSON-ready wire dict."""
        return {"fn": self.filename, "size": self.size, "sha1": self.sha1}
