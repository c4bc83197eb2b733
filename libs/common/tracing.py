"""Distributed tracing for the watcher console.

``configure_tracing`` installs an OpenTelemetry provider exporting over
OTLP/HTTP and instruments FastAPI, HTTPX (the gateway's client) and Redis (the
shared session cache). ``traced`` wraps session operations in manual spans;
without a configured provider OpenTelemetry hands out no-op spans, so call
sites never need to check whether tracing is enabled.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode
import structlog

logger = structlog.get_logger("tracing")

TRACER_NAME = "watcher"


def configure_tracing(
    service_name: str,
    otlp_endpoint: str = "http://localhost:4318/v1/traces",
    sample_rate: float = 1.0,
    environment: str = "local",
    enable_instrumentation: bool = True
) -> Optional[trace.Tracer]:
    """Configure distributed tracing for the console.

    Parameters
    - service_name: Logical service identifier used in trace resources
    - otlp_endpoint: Collector endpoint for exporting spans
    - sample_rate: Fraction of new traces to record (parent decisions win)
    - environment: Deployment environment recorded on the resource
    - enable_instrumentation: Toggle library auto-instrumentation

    Returns
    - A tracer instance for ad-hoc span creation, or ``None`` on failure
    """
    try:
        tracer_provider = TracerProvider(
            resource=Resource.create({
                "service.name": service_name,
                "service.version": "0.1.0",
                "deployment.environment": environment
            }),
            sampler=ParentBased(TraceIdRatioBased(sample_rate)),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
        )
        trace.set_tracer_provider(tracer_provider)

        if enable_instrumentation:
            try:
                FastAPIInstrumentor().instrument()
                HTTPXClientInstrumentor().instrument()
                RedisInstrumentor().instrument()
                logger.info("Automatic instrumentation enabled")
            except Exception as e:
                # Partial instrumentation still leaves manual spans working.
                logger.warning("Failed to enable some instrumentation", error=str(e))

        logger.info(
            "Distributed tracing configured",
            service_name=service_name,
            otlp_endpoint=otlp_endpoint,
            sample_rate=sample_rate
        )
        return trace.get_tracer(TRACER_NAME)

    except Exception as e:
        logger.error("Failed to configure tracing", error=str(e))
        return None


@contextmanager
def traced(operation: str, **attributes: Any) -> Iterator[trace.Span]:
    """Run a block inside a span named ``operation``.

    ``None`` attributes are skipped; other values are recorded as strings.
    Exceptions are recorded on the span, marked as errors, and re-raised.
    """
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(
        operation,
        record_exception=False,
        set_status_on_exception=False
    ) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"watcher.{key}", str(value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            raise
