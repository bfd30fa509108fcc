"""KnownResourceSet - files the control plane already holds.

Parsed from the resource match response (a JSON array of {fn, size, sha1}).
Used purely as a membership filter when assembling the upload payload, and
re-sent with the bits upload so the platform can splice the cached files
back into the application.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import ValidationError

from cfpush.archive.models import ResourceDescriptor

logger = logging.getLogger(__name__)


class KnownResourceSet:
    """Set of artifact filenames already present on the platform.

    Membership is exact, case-sensitive equality on slash-separated names.
    """

    def __init__(
        self,
        descriptors: Iterable[ResourceDescriptor] = (),
        *,
        filenames: Iterable[str] | None = None,
    ) -> None:
        """Initialize the set.

        Args:
            descriptors: Matched resource descriptors reported by the server.
            filenames: Bare filenames, used when no descriptors are available.
                Defaults to the descriptors' filenames.
        """
        self._descriptors = tuple(descriptors)
        if filenames is None:
            filenames = (d.filename for d in self._descriptors)
        self._filenames = frozenset(filenames)

    @classmethod
    def empty(cls) -> KnownResourceSet:
        """Return a set with no known files."""
        return cls()

    @classmethod
    def of(cls, filenames: Iterable[str]) -> KnownResourceSet:
        """Build a set from bare filenames (no size/sha1 information)."""
        return cls(filenames=filenames)

    @classmethod
    def from_wire(cls, payload: Any) -> KnownResourceSet:
        """Parse a resource match response body.

        Args:
            payload: Decoded JSON, expected to be a list of {fn, size, sha1}.

        Returns:
            KnownResourceSet with the reported descriptors.

        Raises:
            ValueError: If the payload is not a list of valid descriptors.
        """
        if not isinstance(payload, list):
            raise ValueError(
                f"Resource match response must be a JSON array, got {type(payload).__name__}"
            )
        descriptors: list[ResourceDescriptor] = []
        for index, item in enumerate(payload):
            try:
                descriptors.append(ResourceDescriptor.model_validate(item))
            except ValidationError as e:
                raise ValueError(f"Invalid resource at index {index}: {e}") from e
        return cls(descriptors)

    @property
    def filenames(self) -> frozenset[str]:
        """Return the known filenames."""
        return self._filenames

    @property
    def descriptors(self) -> tuple[ResourceDescriptor, ...]:
        """Return the matched descriptors in server order."""
        return self._descriptors

    def restricted_to(self, fingerprint: Iterable[ResourceDescriptor]) -> KnownResourceSet:
        """Drop matches that do not describe a file of this artifact.

        A reported descriptor is kept only if its filename appears in the
        fingerprint with the same size and sha1. Bare filenames are checked
        by name only.

        Args:
            fingerprint: Fingerprint of the artifact being uploaded.

        Returns:
            A new KnownResourceSet containing only consistent matches.
        """
        local: dict[str, set[tuple[int, str]]] = {}
        for d in fingerprint:
            local.setdefault(d.filename, set()).add((d.size, d.sha1))

        if not self._descriptors:
            names = [n for n in sorted(self._filenames) if n in local]
            dropped = len(self._filenames) - len(names)
            if dropped:
                logger.warning("Dropped %d known filenames absent from the artifact", dropped)
            return KnownResourceSet(filenames=names)

        kept: list[ResourceDescriptor] = []
        for d in self._descriptors:
            if (d.size, d.sha1) in local.get(d.filename, ()):
                kept.append(d)
            else:
                logger.warning(
                    "Ignoring matched resource not in artifact fingerprint: %s",
                    d.filename,
                )
        return KnownResourceSet(kept)

    def to_wire(self) -> list[dict[str, Any]]:
        """Convert the matched descriptors to the JSON-ready wire form."""
        return [d.to_wire() for d in self._descriptors]

    def __contains__(self, filename: object) -> bool:
        return filename in self._filenames

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._filenames))

    def __len__(self) -> int:
        return len(self._filenames)

    def __repr__(self) -> str:
        return f"KnownResourceSet(filenames={sorted(self._filenames)!r})"
