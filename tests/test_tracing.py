"""Tests for cfpush OpenTelemetry tracing.

- Tracing OFF by default, ON via CFPUSH_OTEL_ENABLED=1
- Pipeline steps emit "cfpush.<operation>" spans with count/size attributes
- No file names or paths in span attributes
- Tests use an in-memory exporter (no external collector required)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from cfpush.archive import DirectoryArchiveReader
from cfpush.observability import tracing
from cfpush.observability.tracing import (
    CFPUSH_OTEL_ENABLED_ENV,
    is_tracing_enabled,
    traced_operation,
)
from cfpush.upload import KnownResourceSet, UploadPayload, build_fingerprint


@pytest.fixture
def exporter(monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
    """Route cfpush spans to an in-memory exporter for one test."""
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))

    def get_tracer(name: str, *args: Any, **kwargs: Any) -> Any:
        return provider.get_tracer(name)

    monkeypatch.setattr(tracing.trace, "get_tracer", get_tracer)
    return span_exporter


class TestConfiguration:
    """Tests for the enable switch."""

    def test_disabled_by_default(self) -> None:
        assert is_tracing_enabled() is False

    @pytest.mark.parametrize("value", ["1", "true", "YES"])
    def test_enabled_values(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv(CFPUSH_OTEL_ENABLED_ENV, value)

        assert is_tracing_enabled() is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "maybe"])
    def test_other_values_disable(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv(CFPUSH_OTEL_ENABLED_ENV, value)

        assert is_tracing_enabled() is False

    def test_disabled_emits_no_spans(self, exporter: InMemorySpanExporter, app_dir: Path) -> None:
        build_fingerprint(DirectoryArchiveReader(app_dir))

        assert exporter.get_finished_spans() == ()


class TestSpans:
    """Tests for spans emitted by pipeline steps."""

    @pytest.fixture(autouse=True)
    def enable_tracing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(CFPUSH_OTEL_ENABLED_ENV, "1")

    def test_fingerprint_span(self, exporter: InMemorySpanExporter, app_dir: Path) -> None:
        build_fingerprint(DirectoryArchiveReader(app_dir))

        (span,) = exporter.get_finished_spans()
        assert span.name == "cfpush.fingerprint"
        assert span.attributes is not None
        assert span.attributes["cfpush.resource_count"] == 3

    def test_payload_span_has_no_file_names(
        self, exporter: InMemorySpanExporter, app_dir: Path
    ) -> None:
        UploadPayload.build(DirectoryArchiveReader(app_dir), KnownResourceSet.of(["app.jar"]))

        (span,) = exporter.get_finished_spans()
        assert span.name == "cfpush.payload_build"
        attributes = dict(span.attributes or {})
        assert attributes["cfpush.file_count"] == 2
        assert not any("app.jar" in str(v) or str(app_dir) in str(v) for v in attributes.values())

    def test_error_marks_span_and_reraises(self, exporter: InMemorySpanExporter) -> None:
        @traced_operation("explode")
        def explode() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode()

        (span,) = exporter.get_finished_spans()
        assert span.name == "cfpush.explode"
        assert span.attributes is not None
        assert span.attributes["error"] is True
        assert span.attributes["error.type"] == "RuntimeError"

    def test_failing_attribute_extractor_is_ignored(
        self, exporter: InMemorySpanExporter
    ) -> None:
        def broken(result: Any) -> dict[str, Any]:
            raise KeyError("missing")

        @traced_operation("quiet", broken)
        def quiet() -> int:
            return 7

        assert quiet() == 7
        assert len(exporter.get_finished_spans()) == 1
