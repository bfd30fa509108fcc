"""Upload status callbacks.

The orchestrator notifies a caller-supplied callback at four points:
resources checked, matched filenames known, payload size known, and each
asynchronous job status reported by the platform.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class UploadStatusCallback(Protocol):
    """Receiver for upload progress notifications."""

    def on_check_resources(self) -> None:
        """Called once the resource match call has completed."""
        ...

    def on_matched_file_names(self, matched_file_names: frozenset[str]) -> None:
        """Called with the filenames the platform already holds."""
        ...

    def on_process_matched_resources(self, length: int) -> None:
        """Called with the total uncompressed size of the upload payload."""
        ...

    def on_progress(self, status: str) -> bool:
        """Called for each upload job status ("queued", "finished", ...).

        Returns:
            True to stop receiving further status updates. The upload job
            itself keeps running on the platform.
        """
        ...


class NullUploadStatusCallback:
    """Callback that ignores every notification."""

    def on_check_resources(self) -> None:
        pass

    def on_matched_file_names(self, matched_file_names: frozenset[str]) -> None:
        pass

    def on_process_matched_resources(self, length: int) -> None:
        pass

    def on_progress(self, status: str) -> bool:
        return False


class LoggingUploadStatusCallback:
    """Callback that logs every notification."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_check_resources(self) -> None:
        self._log.info("Checked resources against the platform cache")

    def on_matched_file_names(self, matched_file_names: frozenset[str]) -> None:
        self._log.info("%d files already present on the platform", len(matched_file_names))

    def on_process_matched_resources(self, length: int) -> None:
        self._log.info("Uploading %d bytes (uncompressed)", length)

    def on_progress(self, status: str) -> bool:
        self._log.info("Upload job status: %s", status)
        return False
