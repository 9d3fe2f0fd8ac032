"""OpenTelemetry tracing for reconcile cycles."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

from .constants import KIND_ARGOCD

if TYPE_CHECKING:
    from .models import Identity

logger = logging.getLogger(__name__)

_tracer: Tracer | None = None


def initialize_tracing(service_name: str = "argocd-operator") -> None:
    """Install an OTLP exporting tracer provider when tracing is switched on.

    Environment Variables:
        OTEL_TRACES_ENABLED: "true" to export spans (default: off)
        OTEL_SERVICE_NAME: Overrides service_name
        OTEL_SERVICE_VERSION: Reported as service.version
        OTEL_EXPORTER_OTLP_ENDPOINT: Collector endpoint (default: http://localhost:4317)
    """
    global _tracer

    if os.getenv("OTEL_TRACES_ENABLED", "false").strip().lower() != "true":
        logger.debug("Tracing disabled")
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", service_name)
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    try:
        provider = TracerProvider(
            resource=Resource.create(
                {"service.name": service_name, "service.version": os.getenv("OTEL_SERVICE_VERSION", "unknown")}
            )
        )
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
    except Exception as e:
        # The operator runs untraced rather than not at all.
        logger.warning(f"Failed to initialize tracing: {e}")
        return

    _tracer = trace.get_tracer(service_name)
    logger.info(f"Exporting traces to {endpoint} as {service_name}")


def get_tracer() -> Tracer | None:
    return _tracer


def instance_attributes(identity: Identity) -> dict[str, str]:
    """Span attributes naming the ArgoCD instance being worked on."""
    return {
        "resource.kind": KIND_ARGOCD,
        "argocd.namespace": identity.namespace,
        "argocd.name": identity.name,
    }


@contextmanager
def trace_span(
    name: str,
    identity: Identity | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Run the body inside a span, recording any exception on it.

    Args:
        name: Span name, e.g. "reconcile" or "stage.rbac"
        identity: Instance the span belongs to
        attributes: Extra span attributes

    Yields:
        The active span, or None when tracing is off
    """
    tracer = get_tracer()
    if tracer is None:
        yield None
        return

    attrs = instance_attributes(identity) if identity is not None else {}
    attrs.update(attributes or {})

    with tracer.start_as_current_span(name, attributes=attrs, record_exception=False) as span:
        try:
            yield span
        except Exception as e:
            if span.is_recording():
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attribute(key: str, value: Any) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
