"""cfpush artifact reading.

Provides a uniform entry view over application artifacts with stable,
restartable enumeration and lazily computed SHA-1 content digests.

Readers:
- DirectoryArchiveReader: exploded application directory
- ZipArchiveReader: zip/war/jar archive file

Use open_archive() to pick the reader for a path.
"""

from cfpush.archive.directory_reader import DirectoryArchiveReader
from cfpush.archive.errors import (
    ArchiveError,
    ArchiveReadError,
    MalformedArchiveError,
)
from cfpush.archive.models import DEFAULT_BUFFER_SIZE, ArtifactEntry, ResourceDescriptor
from cfpush.archive.reader import ArchiveKind, ArchiveReader
from cfpush.archive.registry import open_archive
from cfpush.archive.zip_reader import ZipArchiveReader

__all__ = [
    "DEFAULT_BUFFER_SIZE",
    "ArchiveError",
    "ArchiveKind",
    "ArchiveReadError",
    "ArchiveReader",
    "ArtifactEntry",
    "DirectoryArchiveReader",
    "MalformedArchiveError",
    "ResourceDescriptor",
    "ZipArchiveReader",
    "open_archive",
]
