"""Control plane client error types."""

from __future__ import annotations


class CloudControllerError(Exception):
    """Raised when a control plane request fails.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code, None for transport failures.
        url: Request URL.
        response_excerpt: Leading part of the response body, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        response_excerpt: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url
        self.response_excerpt = response_excerpt

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.url:
            parts.append(f"url={self.url}")
        return " ".join(parts)


class UploadJobTimeoutError(CloudControllerError):
    """Raised when an upload job does not finish within the configured timeout."""

    def __init__(
        self,
        message: str = "Upload job timed out",
        *,
        url: str | None = None,
        job_guid: str | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.job_guid = job_guid
