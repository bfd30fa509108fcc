"""cfpush delta upload pipeline.

Fingerprint an artifact, learn which files the platform already holds,
and stream a zip of the rest:
- build_fingerprint: {fn, size, sha1} records for every file
- KnownResourceSet: files the platform already holds
- UploadPayload: streaming delta zip
- ApplicationUploader: end-to-end orchestration with status callbacks
"""

from cfpush.upload.callback import (
    LoggingUploadStatusCallback,
    NullUploadStatusCallback,
    UploadStatusCallback,
)
from cfpush.upload.fingerprint import build_fingerprint, fingerprint_to_json, fingerprint_to_wire
from cfpush.upload.known_resources import KnownResourceSet
from cfpush.upload.orchestrator import (
    ApplicationUploader,
    BitsUploader,
    ResourceMatcher,
    UploadOutcome,
)
from cfpush.upload.payload import PayloadStream, UploadPayload

__all__ = [
    "ApplicationUploader",
    "BitsUploader",
    "KnownResourceSet",
    "LoggingUploadStatusCallback",
    "NullUploadStatusCallback",
    "PayloadStream",
    "ResourceMatcher",
    "UploadOutcome",
    "UploadPayload",
    "UploadStatusCallback",
    "build_fingerprint",
    "fingerprint_to_json",
    "fingerprint_to_wire",
]
