"""cfpush directory-backed archive reader.

Enumerates an exploded application directory (for example an unpacked
web application) as artifact entries:
- Depth-first walk, children sorted by name for a stable order
- A "dir/" entry precedes the entries beneath it
- One entry per regular file (symlinks to files are followed)
- Symlinked directories and special files (sockets, FIFOs) are skipped
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from cfpush.archive.errors import ArchiveReadError
from cfpush.archive.models import DEFAULT_BUFFER_SIZE, ArtifactEntry
from cfpush.archive.reader import ArchiveKind, ArchiveReader

logger = logging.getLogger(__name__)


def _file_opener(path: Path, archive: str, name: str) -> Callable[[], BinaryIO]:
    """Return a callable that opens path for reading, mapping OSError."""

    def _open() -> BinaryIO:
        try:
            return open(path, "rb")  # noqa: SIM115
        except OSError as e:
            raise ArchiveReadError(
                message=f"Failed to open file: {e.strerror or e}",
                archive=archive,
                entry_name=name,
                cause=e,
            ) from e

    return _open


class DirectoryArchiveReader(ArchiveReader):
    """Archive reader over an exploded directory tree.

    Every call to entries() re-walks the filesystem. Ordering is stable for
    an unmodified tree because siblings are sorted by name at every level.
    """

    def __init__(self, root: str | Path, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        """Initialize the reader.

        Args:
            root: Application directory.
            buffer_size: Read buffer size for digests and payload streaming.

        Raises:
            ArchiveReadError: If root does not exist or is not a directory.
        """
        root_path = Path(root)
        if not root_path.is_dir():
            raise ArchiveReadError(
                message="Application directory not found",
                archive=str(root_path),
            )
        super().__init__(root_path.resolve(), buffer_size=buffer_size)
        logger.debug("DirectoryArchiveReader initialized with root=%s", self._source)

    @property
    def kind(self) -> ArchiveKind:
        """Return the source variant identifier."""
        return ArchiveKind.DIRECTORY

    def entries(self) -> Iterator[ArtifactEntry]:
        """Walk the tree and yield directory and file entries."""
        yield from self._walk(self._source, "")

    def _walk(self, directory: Path, prefix: str) -> Iterator[ArtifactEntry]:
        try:
            with os.scandir(directory) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise ArchiveReadError(
                message=f"Failed to list directory: {e.strerror or e}",
                archive=str(self._source),
                entry_name=prefix or None,
                cause=e,
            ) from e

        for child in children:
            try:
                child.name.encode("utf-8")
            except UnicodeEncodeError as e:
                raw = os.fsencode(f"{prefix}{child.name}")
                raise ArchiveReadError(
                    message="File name is not valid UTF-8",
                    archive=str(self._source),
                    entry_name=raw.decode("utf-8", "backslashreplace"),
                    cause=e,
                ) from e

            try:
                is_directory = child.is_dir(follow_symlinks=False)
                if not is_directory and child.is_symlink() and child.is_dir():
                    logger.debug("Skipping symlinked directory %s%s", prefix, child.name)
                    continue
                if not is_directory and not child.is_file():
                    logger.debug("Skipping special file %s%s", prefix, child.name)
                    continue
                st = child.stat(follow_symlinks=not is_directory)
            except OSError as e:
                raise ArchiveReadError(
                    message=f"Failed to stat entry: {e.strerror or e}",
                    archive=str(self._source),
                    entry_name=f"{prefix}{child.name}",
                    cause=e,
                ) from e

            if is_directory:
                name = f"{prefix}{child.name}/"
                yield ArtifactEntry(
                    name=name,
                    is_directory=True,
                    size_bytes=0,
                    modified=datetime.fromtimestamp(st.st_mtime),
                    mode=stat.S_IMODE(st.st_mode),
                    archive=str(self._source),
                )
                yield from self._walk(Path(child.path), name)
                continue

            name = f"{prefix}{child.name}"
            yield ArtifactEntry(
                name=name,
                is_directory=False,
                size_bytes=st.st_size,
                modified=datetime.fromtimestamp(st.st_mtime),
                mode=stat.S_IMODE(st.st_mode),
                archive=str(self._source),
                opener=_file_opener(Path(child.path), str(self._source), name),
                buffer_size=self._buffer_size,
            )
