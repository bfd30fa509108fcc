"""Control plane client models.

Asynchronous upload job resource as returned by the bits endpoint and the
job status endpoint:

    {"metadata": {"guid": "...", "url": "/v2/jobs/..."},
     "entity": {"guid": "...", "status": "queued", "error_details": {...}}}
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class JobStatus(StrEnum):
    """Lifecycle of an asynchronous upload job."""

    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True once the job will not change status again."""
        return self in (JobStatus.FINISHED, JobStatus.FAILED)


class UploadJob(BaseModel):
    """Upload job state.

    Attributes:
        guid: Job identifier, None for synchronous uploads.
        url: Relative status URL to poll, None when there is nothing to poll.
        status: Current job status.
        error_details: Platform-reported failure details, if any.
    """

    model_config = ConfigDict(frozen=True)

    guid: str | None = None
    url: str | None = None
    status: JobStatus
    error_details: dict[str, Any] | None = None

    @classmethod
    def from_resource(cls, resource: Any) -> UploadJob:
        """Parse a job resource.

        A body without job metadata (an empty object or an application
        resource from a synchronous upload) is treated as a finished job.

        Raises:
            ValueError: If the body is not a JSON object or the status is unknown.
        """
        if resource is None:
            return cls(status=JobStatus.FINISHED)
        if not isinstance(resource, dict):
            raise ValueError(f"Job resource must be a JSON object, got {type(resource).__name__}")

        metadata = resource.get("metadata") or {}
        entity = resource.get("entity") or {}
        raw_status = entity.get("status")
        if raw_status is None:
            return cls(status=JobStatus.FINISHED)

        try:
            status = JobStatus(str(raw_status).lower())
        except ValueError as e:
            raise ValueError(f"Unknown job status: {raw_status!r}") from e

        return cls(
            guid=metadata.get("guid") or entity.get("guid"),
            url=metadata.get("url"),
            status=status,
            error_details=entity.get("error_details"),
        )
