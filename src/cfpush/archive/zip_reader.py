"""cfpush zip-backed archive reader.

Enumerates a zip, war or jar file as artifact entries in central directory
order. The archive is opened (and its central directory parsed) when the
reader is constructed, so a malformed archive fails before any entry is
produced.
"""

from __future__ import annotations

import logging
import stat
import zipfile
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from cfpush.archive.errors import ArchiveReadError, MalformedArchiveError
from cfpush.archive.models import DEFAULT_BUFFER_SIZE, READ_FAILURES, ArtifactEntry
from cfpush.archive.reader import ArchiveKind, ArchiveReader

logger = logging.getLogger(__name__)

_UNIX_CREATE_SYSTEM = 3
_ZIP_EPOCH = datetime(1980, 1, 1)

# Member-level failures beyond plain read errors: unsupported compression,
# encrypted members and use of an already closed archive.
_OPEN_FAILURES: tuple[type[Exception], ...] = (
    *READ_FAILURES,
    NotImplementedError,
    RuntimeError,
    ValueError,
)


def _normalize_name(name: str) -> str:
    """Normalize a member name to slash-separated form."""
    return name.replace("\\", "/")


def _member_mode(info: zipfile.ZipInfo) -> int | None:
    """Return POSIX permission bits recorded for a member, if any."""
    if info.create_system != _UNIX_CREATE_SYSTEM:
        return None
    mode = stat.S_IMODE(info.external_attr >> 16)
    return mode or None


def _member_modified(info: zipfile.ZipInfo) -> datetime:
    """Return the member timestamp, tolerating zeroed or out-of-range DOS fields."""
    year, month, day, hour, minute, second = info.date_time
    try:
        return datetime(year, max(month, 1), max(day, 1), hour, minute, second)
    except ValueError:
        return _ZIP_EPOCH


class ZipArchiveReader(ArchiveReader):
    """Archive reader over a zip-format file.

    Holds one open handle on the archive until close(). Entry objects are
    built once from the central directory and served again on every
    entries() call, so each member is inflated at most once for its digest.
    """

    def __init__(self, path: str | Path, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        """Open the archive and read its central directory.

        Args:
            path: Archive file path.
            buffer_size: Read buffer size for digests and payload streaming.

        Raises:
            ArchiveReadError: If the file cannot be opened.
            MalformedArchiveError: If the file is not a valid zip archive.
        """
        archive_path = Path(path)
        super().__init__(archive_path.resolve(), buffer_size=buffer_size)
        try:
            self._zip = zipfile.ZipFile(archive_path, mode="r")
        except zipfile.BadZipFile as e:
            raise MalformedArchiveError(
                message=f"Not a valid zip archive: {e}",
                archive=str(self._source),
                cause=e,
            ) from e
        except OSError as e:
            raise ArchiveReadError(
                message=f"Failed to open archive: {e.strerror or e}",
                archive=str(self._source),
                cause=e,
            ) from e

        self._entries = [self._to_entry(info) for info in self._zip.infolist()]
        logger.debug(
            "ZipArchiveReader opened %s with %d members",
            self._source,
            len(self._entries),
        )

    @property
    def kind(self) -> ArchiveKind:
        """Return the source variant identifier."""
        return ArchiveKind.ZIP

    def entries(self) -> Iterator[ArtifactEntry]:
        """Yield entries in central directory order."""
        return iter(self._entries)

    def close(self) -> None:
        """Close the archive handle."""
        self._zip.close()

    def _to_entry(self, info: zipfile.ZipInfo) -> ArtifactEntry:
        name = _normalize_name(info.filename)
        is_directory = name.endswith("/")
        return ArtifactEntry(
            name=name,
            is_directory=is_directory,
            size_bytes=0 if is_directory else info.file_size,
            modified=_member_modified(info),
            mode=_member_mode(info),
            compress_type=info.compress_type,
            archive=str(self._source),
            opener=None if is_directory else self._member_opener(info, name),
            buffer_size=self._buffer_size,
        )

    def _member_opener(self, info: zipfile.ZipInfo, name: str) -> Callable[[], BinaryIO]:
        def _open() -> BinaryIO:
            try:
                return self._zip.open(info, mode="r")
            except _OPEN_FAILURES as e:
                raise ArchiveReadError(
                    message=f"Failed to open archive member: {e}",
                    archive=str(self._source),
                    entry_name=name,
                    cause=e,
                ) from e

        return _open
