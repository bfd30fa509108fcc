"""cfpush archive reader interface definition.

Provides the ArchiveReader contract that every artifact source implements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from enum import StrEnum
from pathlib import Path
from types import TracebackType

from cfpush.archive.models import DEFAULT_BUFFER_SIZE, ArtifactEntry


class ArchiveKind(StrEnum):
    """Artifact source variants."""

    DIRECTORY = "directory"
    ZIP = "zip"


class ArchiveReader(ABC):
    """Abstract base class for artifact readers.

    All implementations must provide:
    - Finite, restartable enumeration (calling entries() again yields an
      equivalent sequence)
    - Stable ordering across calls on an unmodified source
    - Slash-separated, artifact-relative entry names

    Implementations:
    - DirectoryArchiveReader: exploded application directory
    - ZipArchiveReader: zip/war/jar archive file
    """

    def __init__(self, source: Path, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self._source = source
        self._buffer_size = buffer_size

    @property
    def source(self) -> Path:
        """Return the artifact location."""
        return self._source

    @property
    def buffer_size(self) -> int:
        """Return the read buffer size used for entry content."""
        return self._buffer_size

    @property
    @abstractmethod
    def kind(self) -> ArchiveKind:
        """Return the source variant identifier."""
        ...

    @abstractmethod
    def entries(self) -> Iterator[ArtifactEntry]:
        """Enumerate every entry of the artifact.

        Returns:
            Lazy iterator of ArtifactEntry in a stable order. Directory
            entries precede their descendants where the source has them.

        Raises:
            ArchiveReadError: If the source cannot be walked.
        """
        ...

    def close(self) -> None:  # noqa: B027
        """Release any handle held on the source."""

    def __enter__(self) -> ArchiveReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={str(self._source)!r})"
