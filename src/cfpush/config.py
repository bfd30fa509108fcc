"""cfpush configuration.

Settings are read from the environment into validated pydantic models.

Environment Variables:
    CFPUSH_API_URL: Control plane base URL (required for uploads)
    CFPUSH_ACCESS_TOKEN: Bearer token sent with every request (optional)
    CFPUSH_HTTP_TIMEOUT: HTTP timeout in seconds (default: 30)
    CFPUSH_VERIFY_TLS: Verify TLS certificates (default: true)
    CFPUSH_JOB_POLL_INTERVAL: Seconds between job status polls (default: 5)
    CFPUSH_JOB_TIMEOUT: Seconds to wait for an upload job (default: 180)
    CFPUSH_RESOURCE_MATCH_CHUNK_SIZE: Descriptors per resource match request
        (default: 5000)
    CFPUSH_BUFFER_SIZE: Read buffer size in bytes for artifact content
        (default: 16384)
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from cfpush.archive.models import DEFAULT_BUFFER_SIZE

CFPUSH_API_URL_ENV = "CFPUSH_API_URL"
CFPUSH_ACCESS_TOKEN_ENV = "CFPUSH_ACCESS_TOKEN"
CFPUSH_HTTP_TIMEOUT_ENV = "CFPUSH_HTTP_TIMEOUT"
CFPUSH_VERIFY_TLS_ENV = "CFPUSH_VERIFY_TLS"
CFPUSH_JOB_POLL_INTERVAL_ENV = "CFPUSH_JOB_POLL_INTERVAL"
CFPUSH_JOB_TIMEOUT_ENV = "CFPUSH_JOB_TIMEOUT"
CFPUSH_RESOURCE_MATCH_CHUNK_SIZE_ENV = "CFPUSH_RESOURCE_MATCH_CHUNK_SIZE"
CFPUSH_BUFFER_SIZE_ENV = "CFPUSH_BUFFER_SIZE"

DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_JOB_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_JOB_TIMEOUT_SECONDS = 180.0
DEFAULT_RESOURCE_MATCH_CHUNK_SIZE = 5000


class ConfigError(ValueError):
    """Raised when settings are missing or malformed."""


class ControllerSettings(BaseModel):
    """Connection settings for the control plane client.

    Attributes:
        api_url: Base URL, without trailing slash.
        access_token: Bearer token, never logged.
        timeout_seconds: Per-request HTTP timeout.
        verify_tls: Verify server certificates.
        job_poll_interval_seconds: Delay between upload job polls.
        job_timeout_seconds: Maximum time to follow an upload job.
        resource_match_chunk_size: Maximum descriptors per resource match call.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_url: str = Field(min_length=1)
    access_token: SecretStr | None = None
    timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)
    verify_tls: bool = True
    job_poll_interval_seconds: float = Field(default=DEFAULT_JOB_POLL_INTERVAL_SECONDS, ge=0)
    job_timeout_seconds: float = Field(default=DEFAULT_JOB_TIMEOUT_SECONDS, gt=0)
    resource_match_chunk_size: int = Field(default=DEFAULT_RESOURCE_MATCH_CHUNK_SIZE, ge=1)

    @field_validator("api_url")
    @classmethod
    def _normalize_api_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return value


def _get_env_str(env: Mapping[str, str], key: str) -> str | None:
    """Get a stripped string from the environment, None if unset or blank."""
    val = env.get(key, "").strip()
    return val or None


def _get_env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    val = env.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    if val == "":
        return default
    raise ConfigError(f"{key} must be a boolean, got {val!r}")


def _get_env_float(env: Mapping[str, str], key: str, default: float) -> float:
    """Get float from environment variable."""
    val = _get_env_str(env, key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {val!r}") from e


def _get_env_int(env: Mapping[str, str], key: str, default: int) -> int:
    """Get integer from environment variable."""
    val = _get_env_str(env, key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {val!r}") from e


def load_controller_settings(
    env: Mapping[str, str] | None = None,
    *,
    api_url: str | None = None,
) -> ControllerSettings:
    """Load control plane settings from the environment.

    Args:
        env: Environment mapping (defaults to os.environ).
        api_url: Explicit base URL overriding CFPUSH_API_URL.

    Returns:
        Validated ControllerSettings.

    Raises:
        ConfigError: If the base URL is missing or a value is malformed.
    """
    if env is None:
        env = os.environ

    url = api_url or _get_env_str(env, CFPUSH_API_URL_ENV)
    if not url:
        raise ConfigError(f"Control plane URL not configured (set {CFPUSH_API_URL_ENV})")

    token = _get_env_str(env, CFPUSH_ACCESS_TOKEN_ENV)
    try:
        return ControllerSettings(
            api_url=url,
            access_token=SecretStr(token) if token else None,
            timeout_seconds=_get_env_float(
                env, CFPUSH_HTTP_TIMEOUT_ENV, DEFAULT_HTTP_TIMEOUT_SECONDS
            ),
            verify_tls=_get_env_bool(env, CFPUSH_VERIFY_TLS_ENV, True),
            job_poll_interval_seconds=_get_env_float(
                env, CFPUSH_JOB_POLL_INTERVAL_ENV, DEFAULT_JOB_POLL_INTERVAL_SECONDS
            ),
            job_timeout_seconds=_get_env_float(
                env, CFPUSH_JOB_TIMEOUT_ENV, DEFAULT_JOB_TIMEOUT_SECONDS
            ),
            resource_match_chunk_size=_get_env_int(
                env, CFPUSH_RESOURCE_MATCH_CHUNK_SIZE_ENV, DEFAULT_RESOURCE_MATCH_CHUNK_SIZE
            ),
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid control plane settings: {e}") from e


def load_buffer_size(env: Mapping[str, str] | None = None) -> int:
    """Load the artifact read buffer size.

    Raises:
        ConfigError: If CFPUSH_BUFFER_SIZE is not a positive integer.
    """
    if env is None:
        env = os.environ
    size = _get_env_int(env, CFPUSH_BUFFER_SIZE_ENV, DEFAULT_BUFFER_SIZE)
    if size <= 0:
        raise ConfigError(f"{CFPUSH_BUFFER_SIZE_ENV} must be positive, got {size}")
    return size
