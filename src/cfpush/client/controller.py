"""Control plane HTTP client for application bits uploads.

Provides the three calls the upload orchestrator needs:
- PUT /v2/resource_match: which fingerprinted files the platform already has
- PUT /v2/apps/{guid}/bits?async=true: multipart upload of the delta zip
- GET {job url}: asynchronous upload job status

Transport concerns (timeouts, TLS) come from ControllerSettings. Requests
are not retried; failures raise CloudControllerError.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.parse
from collections.abc import Callable, Iterator, Sequence
from types import TracebackType
from typing import Any

import httpx

from cfpush.archive.models import ResourceDescriptor
from cfpush.client.errors import CloudControllerError, UploadJobTimeoutError
from cfpush.client.models import JobStatus, UploadJob
from cfpush.config import ControllerSettings
from cfpush.observability.tracing import traced_operation
from cfpush.upload.known_resources import KnownResourceSet
from cfpush.upload.payload import UploadPayload

logger = logging.getLogger(__name__)

CFPUSH_USER_AGENT = "cfpush/0.1"
RESOURCE_MATCH_PATH = "/v2/resource_match"
APP_BITS_PATH = "/v2/apps/{guid}/bits"
APPLICATION_PART_NAME = "application.zip"
APPLICATION_CONTENT_TYPE = "application/zip"
_RESPONSE_EXCERPT_LENGTH = 500


def _known_attributes(known: KnownResourceSet) -> dict[str, Any]:
    return {"matched_count": len(known)}


def _job_attributes(job: UploadJob) -> dict[str, Any]:
    return {"job_status": job.status.value}


class CloudControllerClient:
    """HTTP collaborator for resource matching and bits upload.

    Satisfies both the ResourceMatcher and BitsUploader protocols of the
    upload orchestrator.
    """

    def __init__(
        self,
        settings: ControllerSettings,
        http_client: httpx.Client | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Connection settings.
            http_client: Optional httpx.Client for dependency injection (testing).
                An injected client is not closed by close().
            sleep: Delay function used between job polls.
            clock: Monotonic clock used for the job timeout.
        """
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=settings.timeout_seconds,
            verify=settings.verify_tls,
        )
        self._sleep = sleep
        self._clock = clock

    @property
    def settings(self) -> ControllerSettings:
        """Return the connection settings."""
        return self._settings

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> CloudControllerClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @traced_operation("resource_match", _known_attributes)
    def check_known_resources(self, descriptors: Sequence[ResourceDescriptor]) -> KnownResourceSet:
        """Ask the platform which fingerprinted files it already holds.

        Descriptors are sent in chunks of resource_match_chunk_size; the
        matched descriptors of every chunk are concatenated in order.

        Args:
            descriptors: Artifact fingerprint.

        Returns:
            KnownResourceSet of the matched descriptors.

        Raises:
            CloudControllerError: On HTTP failure or an unparseable response.
        """
        chunk_size = self._settings.resource_match_chunk_size
        matched: list[ResourceDescriptor] = []

        for start in range(0, len(descriptors), chunk_size):
            chunk = descriptors[start : start + chunk_size]
            body = self._request(
                "PUT",
                RESOURCE_MATCH_PATH,
                json=[d.to_wire() for d in chunk],
            )
            try:
                matched.extend(KnownResourceSet.from_wire(body).descriptors)
            except ValueError as e:
                raise CloudControllerError(
                    f"Invalid resource match response: {e}",
                    url=self._url(RESOURCE_MATCH_PATH),
                ) from e

        logger.debug(
            "Resource match: %d of %d resources already present",
            len(matched),
            len(descriptors),
        )
        return KnownResourceSet(matched)

    @traced_operation("upload_bits", _job_attributes)
    def upload_bits(
        self,
        app_guid: str,
        payload: UploadPayload,
        known: KnownResourceSet,
    ) -> UploadJob:
        """Upload the delta zip and the list of reused resources.

        The zip is streamed from the payload as the request body is sent.

        Args:
            app_guid: Target application GUID.
            payload: Delta zip to upload.
            known: Matched resources the platform should splice back in.

        Returns:
            UploadJob describing the asynchronous processing job.

        Raises:
            CloudControllerError: On HTTP failure or an unparseable response.
            ArchiveReadError: If the payload cannot be produced while streaming.
        """
        path = APP_BITS_PATH.format(guid=urllib.parse.quote(app_guid, safe=""))
        resources = json.dumps(known.to_wire(), separators=(",", ":"))

        stream = payload.open()
        try:
            body = self._request(
                "PUT",
                path,
                params={"async": "true"},
                data={"resources": resources},
                files={"application": (APPLICATION_PART_NAME, stream, APPLICATION_CONTENT_TYPE)},
            )
        finally:
            stream.close()

        job = self._parse_job(body, path)
        logger.debug("Bits upload accepted for app %s: job status %s", app_guid, job.status)
        return job

    def watch_job(self, job: UploadJob) -> Iterator[str]:
        """Follow an upload job until it finishes or fails.

        Yields the current status first, then polls the job URL every
        job_poll_interval_seconds. Closing the iterator stops polling; the
        job on the platform is not affected.

        Args:
            job: Job returned by upload_bits().

        Yields:
            Job status strings ("queued", "running", "finished", "failed").

        Raises:
            UploadJobTimeoutError: If the job is still pending after
                job_timeout_seconds.
            CloudControllerError: On HTTP failure while polling.
        """
        deadline = self._clock() + self._settings.job_timeout_seconds
        current = job
        while True:
            yield current.status.value

            if current.status == JobStatus.FAILED:
                logger.warning(
                    "Upload job %s failed: %s",
                    current.guid,
                    current.error_details,
                )
                return
            if current.status.is_terminal or current.url is None:
                return
            if self._clock() >= deadline:
                raise UploadJobTimeoutError(
                    f"Upload job not finished after {self._settings.job_timeout_seconds:g}s",
                    url=self._url(current.url),
                    job_guid=current.guid,
                )

            self._sleep(self._settings.job_poll_interval_seconds)
            current = self._parse_job(self._request("GET", current.url), current.url)

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._settings.api_url}{path}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": CFPUSH_USER_AGENT,
        }
        token = self._settings.access_token
        if token is not None:
            headers["Authorization"] = f"bearer {token.get_secret_value()}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute a request and decode its JSON body.

        Returns:
            Decoded JSON, or None for an empty body.

        Raises:
            CloudControllerError: On transport failure, non-2xx status or
                invalid JSON.
        """
        url = self._url(path)
        try:
            response = self._http.request(method, url, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CloudControllerError(
                f"{method} request rejected",
                status_code=e.response.status_code,
                url=url,
                response_excerpt=e.response.text[:_RESPONSE_EXCERPT_LENGTH],
            ) from e
        except httpx.RequestError as e:
            raise CloudControllerError(f"{method} request failed: {e}", url=url) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CloudControllerError(
                "Response is not valid JSON",
                status_code=response.status_code,
                url=url,
                response_excerpt=response.text[:_RESPONSE_EXCERPT_LENGTH],
            ) from e

    def _parse_job(self, body: Any, path: str) -> UploadJob:
        try:
            return UploadJob.from_resource(body)
        except ValueError as e:
            raise CloudControllerError(f"Invalid job response: {e}", url=self._url(path)) from e
