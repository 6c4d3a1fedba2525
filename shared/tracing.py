"""
OpenTelemetry tracing configuration for Template Registry services.
"""

from typing import Dict, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.asyncpg import AsyncPGInstrumentor


def parse_headers(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse `key=value,key=value` exporter headers."""
    if not raw:
        return None
    headers: Dict[str, str] = {}
    for segment in raw.split(","):
        if not segment or "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        key = key.strip()
        if key:
            headers[key] = value.strip()
    return headers or None


def setup_tracing(app: FastAPI, service_name: str, otlp_endpoint: str, env: str = "local",
                  otlp_headers: Optional[str] = None, service_version: str = "1.0.0") -> TracerProvider:
    """
    Set up OpenTelemetry tracing for a service.

    Args:
        app: FastAPI application to instrument
        service_name: Name of the service
        otlp_endpoint: OTLP gRPC collector endpoint
        env: Deployment environment
        otlp_headers: Optional exporter headers
        service_version: Version of the service
    """
    resource = Resource.create({
        "service.name": service_name,
        "service.version": service_version,
        "service.namespace": "template-registry",
        "deployment.environment": env,
    })

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    exporter_kwargs = {"endpoint": otlp_endpoint, "insecure": otlp_endpoint.startswith("http://")}
    headers = parse_headers(otlp_headers)
    if headers:
        exporter_kwargs["headers"] = headers
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs)))

    if env == "local":
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=tracer_provider)
    AsyncPGInstrumentor().instrument(tracer_provider=tracer_provider)

    return tracer_provider


def get_tracer(name: str):
    """Get a tracer instance for a component."""
    return trace.get_tracer(name)
