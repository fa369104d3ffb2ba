"""OpenTelemetry setup for the SMS invoice service.

Modules create spans through ``trace.get_tracer("sms-invoice")``; until
:func:`init_telemetry` installs a provider those spans are no-ops.
"""

from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter

from sms_invoice.config import AppConfig, config

logger = logging.getLogger(__name__)

SERVICE_NAME = "sms-invoice"

_provider: TracerProvider | None = None


def span_exporter(cfg: AppConfig) -> Optional[SpanExporter]:
    """Pick the exporter for *cfg*: OTLP when an endpoint is set, console at DEBUG, else none."""
    if cfg.otel_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning(
                "OTEL_EXPORTER_OTLP_ENDPOINT is set but the OTLP exporter is not installed "
                "(pip install 'sms-invoice[otlp]'); spans will not be exported"
            )
            return None
        logger.info("OTLP exporter configured: %s", cfg.otel_endpoint)
        return OTLPSpanExporter(endpoint=cfg.otel_endpoint)

    if cfg.log_level.upper() == "DEBUG":
        return ConsoleSpanExporter()
    return None


def init_telemetry(cfg: AppConfig = config) -> TracerProvider:
    """Install the global tracer provider once per process."""
    global _provider
    if _provider is not None:
        return _provider

    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    exporter = span_exporter(cfg)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _provider = provider
    return provider
