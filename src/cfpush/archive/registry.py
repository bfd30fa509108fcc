"""Archive registry - artifact variant detection and reader dispatch.

Provides a single entrypoint for opening an application artifact:
- Directories are read by DirectoryArchiveReader
- Anything else is read as a zip-format archive (zip, war, jar, ear)

Nothing outside this module chooses a reader class.
"""

from __future__ import annotations

from pathlib import Path

from cfpush.archive.directory_reader import DirectoryArchiveReader
from cfpush.archive.errors import ArchiveReadError
from cfpush.archive.models import DEFAULT_BUFFER_SIZE
from cfpush.archive.reader import ArchiveReader
from cfpush.archive.zip_reader import ZipArchiveReader


def open_archive(path: str | Path, *, buffer_size: int | None = None) -> ArchiveReader:
    """Open an application artifact for reading.

    Args:
        path: Exploded application directory or archive file.
        buffer_size: Optional read buffer size (defaults to DEFAULT_BUFFER_SIZE).

    Returns:
        An ArchiveReader for the artifact. Callers should close it (or use it
        as a context manager) once the upload is done.

    Raises:
        ArchiveReadError: If the path does not exist or cannot be opened.
        MalformedArchiveError: If the path is a file but not a valid zip.
    """
    artifact = Path(path)
    size = buffer_size if buffer_size is not None else DEFAULT_BUFFER_SIZE

    if artifact.is_dir():
        return DirectoryArchiveReader(artifact, buffer_size=size)

    if not artifact.exists():
        raise ArchiveReadError(message="Artifact not found", archive=str(artifact))

    return ZipArchiveReader(artifact, buffer_size=size)
