"""cfpush OpenTelemetry tracing integration.

Provides a tracing decorator for the upload pipeline steps (fingerprint,
resource match, payload build, bits upload).

Environment Variables:
    CFPUSH_OTEL_ENABLED: Set to "1" to emit spans (default: disabled)

Security:
    - Never export filesystem paths, file names or access tokens in span
      attributes
    - Only counts, sizes and opaque identifiers
"""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

logger = logging.getLogger(__name__)

CFPUSH_OTEL_ENABLED_ENV = "CFPUSH_OTEL_ENABLED"
TRACER_NAME = "cfpush"

F = TypeVar("F", bound=Callable[..., Any])

ResultAttributes = Callable[[Any], dict[str, Any]]


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    return default


def is_tracing_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _get_env_bool(CFPUSH_OTEL_ENABLED_ENV, False)


def traced_operation(
    operation: str,
    result_attributes: ResultAttributes | None = None,
) -> Callable[[F], F]:
    """Decorator to trace an upload pipeline step with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "fingerprint", "resource_match").
        result_attributes: Optional function mapping the return value to
            safe span attributes.

    Returns:
        Decorated function that emits a "cfpush.<operation>" span when
        tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(*args, **kwargs)

            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(f"cfpush.{operation}") as span:
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                if result_attributes is not None:
                    _add_result_attributes(span, result, result_attributes)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any, extract: ResultAttributes) -> None:
    """Add result-based attributes to span safely."""
    try:
        for key, value in extract(result).items():
            span.set_attribute(f"cfpush.{key}", value)
    except Exception as e:
        logger.debug("Failed to add result attributes to span: %s", e)
