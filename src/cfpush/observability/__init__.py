"""cfpush observability helpers (OpenTelemetry tracing)."""

from cfpush.observability.tracing import is_tracing_enabled, traced_operation

__all__ = ["is_tracing_enabled", "traced_operation"]
