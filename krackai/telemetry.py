"""OpenTelemetry setup for the interview engine.

Provides a configurable TracerProvider:
  - **dev** (default): ConsoleSpanExporter — spans print to stdout.
  - **prod**: OTLPSpanExporter — ships spans to an OTLP-compatible collector.
  - **none**: no exporter; spans are created but dropped.

Usage:
    from krackai.telemetry import init_telemetry, get_tracer

    init_telemetry()          # call once at startup (lifespan)
    tracer = get_tracer()     # use anywhere
    with tracer.start_as_current_span("krackai.stt"):
        ...
"""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

logger = logging.getLogger(__name__)

_SERVICE_NAME = "krackai-interview-engine"
_TRACER_NAME = "krackai"
_initialized = False


def init_telemetry() -> None:
    """Initialise the global TracerProvider.

    Reads ``OTEL_EXPORTER`` from the environment:
      - ``"otlp"`` → OTLPSpanExporter (requires ``OTEL_EXPORTER_OTLP_ENDPOINT``)
      - ``"none"`` → no span processor
      - anything else → ConsoleSpanExporter (default for local dev)
    """
    global _initialized
    if _initialized:
        return

    resource = Resource.create({"service.name": _SERVICE_NAME})
    provider = TracerProvider(resource=resource)

    exporter_type = os.environ.get("OTEL_EXPORTER", "console").lower()
    if exporter_type == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
            logger.info("[Telemetry] OTLP exporter → %s", endpoint)
        except ImportError:
            logger.warning("[Telemetry] OTLP exporter not installed — falling back to console.")
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter_type == "none":
        logger.info("[Telemetry] Span export disabled.")
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        logger.info("[Telemetry] Console exporter active (dev mode).")

    trace.set_tracer_provider(provider)
    _initialized = True


def get_tracer() -> trace.Tracer:
    """Return the engine tracer (safe to call before ``init_telemetry``)."""
    return trace.get_tracer(_TRACER_NAME)

