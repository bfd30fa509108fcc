"""Fingerprint builder - {fn, size, sha1} records for an artifact.

The fingerprint is sent to the control plane's resource match endpoint to
learn which files it already holds. Order follows the reader's enumeration
(directories dropped), so two builds over an unmodified artifact serialize
identically. Duplicate names in a malformed source are passed through.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from cfpush.archive.models import ResourceDescriptor
from cfpush.archive.reader import ArchiveReader
from cfpush.observability.tracing import traced_operation

logger = logging.getLogger(__name__)


def _fingerprint_attributes(descriptors: list[ResourceDescriptor]) -> dict[str, Any]:
    return {
        "resource_count": len(descriptors),
        "total_size_bytes": sum(d.size for d in descriptors),
    }


@traced_operation("fingerprint", _fingerprint_attributes)
def build_fingerprint(reader: ArchiveReader) -> list[ResourceDescriptor]:
    """Build the fingerprint of an artifact.

    Args:
        reader: Artifact reader.

    Returns:
        One ResourceDescriptor per file entry, in enumeration order.

    Raises:
        ArchiveReadError: If the artifact or any entry cannot be read. No
            partial fingerprint is returned.
    """
    descriptors = [
        ResourceDescriptor.from_entry(entry) for entry in reader.entries() if not entry.is_directory
    ]
    logger.debug(
        "Fingerprinted %s: %d resources",
        reader.source,
        len(descriptors),
    )
    return descriptors


def fingerprint_to_wire(descriptors: Iterable[ResourceDescriptor]) -> list[dict[str, Any]]:
    """Convert descriptors to the JSON-ready request body."""
    return [d.to_wire() for d in descriptors]


def fingerprint_to_json(descriptors: Iterable[ResourceDescriptor]) -> str:
    """Serialize descriptors to compact JSON (fn, size, sha1 key order)."""
    return json.dumps(fingerprint_to_wire(descriptors), separators=(",", ":"))
