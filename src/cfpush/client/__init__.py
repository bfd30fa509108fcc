"""cfpush control plane client.

httpx-based collaborator for the upload orchestrator: resource matching,
bits upload and upload job polling.
"""

from cfpush.client.controller import CloudControllerClient
from cfpush.client.errors import CloudControllerError, UploadJobTimeoutError
from cfpush.client.models import JobStatus, UploadJob

__all__ = [
    "CloudControllerClient",
    "CloudControllerError",
    "JobStatus",
    "UploadJob",
    "UploadJobTimeoutError",
]
