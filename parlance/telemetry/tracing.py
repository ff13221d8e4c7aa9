from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter

from parlance.telemetry.logging import get_logger

_provider: TracerProvider | None = None


def build_tracer_provider(
    service_name: str,
    exporter: SpanExporter,
    *,
    service_version: str = "0.1.0",
    batch: bool = True,
) -> TracerProvider:
    resource = Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: service_version})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(exporter) if batch else SimpleSpanProcessor(exporter)
    provider.add_span_processor(processor)
    return provider


def configure_tracing(service_name: str, endpoint: str | None) -> None:
    """Install an OTLP/HTTP exporter as the global provider; no endpoint means no tracing."""
    global _provider
    if _provider is not None or endpoint is None:
        return
    _provider = build_tracer_provider(service_name, OTLPSpanExporter(endpoint=endpoint))
    trace.set_tracer_provider(_provider)
    get_logger(__name__).info("tracing.enabled", endpoint=endpoint, service_name=service_name)


def shutdown_tracing() -> None:
    """Flush pending spans; safe to call when tracing was never enabled."""
    global _provider
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None


def get_tracer(name: str, provider: trace.TracerProvider | None = None) -> trace.Tracer:
    """Return a tracer from ``provider``, or from the global provider.

    The global provider is the API no-op one until tracing is configured.
    """
    if provider is not None:
        return provider.get_tracer(name)
    return trace.get_tracer(name)


__all__ = ["build_tracer_provider", "configure_tracing", "shutdown_tracing", "get_tracer"]
