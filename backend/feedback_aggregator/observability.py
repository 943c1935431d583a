"""Optional OpenTelemetry tracing for intake requests and relay submissions.

Disabled unless ``OTEL_ENABLED`` is set; a missing SDK is logged and skipped.
Spans go to the OTLP endpoint when one is configured, else to the console.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from feedback_aggregator.config import settings

logger = logging.getLogger(__name__)


def _span_exporter():
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()


def _install_tracer_provider(process_role: str) -> bool:
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    if trace.get_tracer_provider().__class__.__name__ != "ProxyTracerProvider":
        # Already initialized in this process.
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.SERVICE_NAME,
                "deployment.environment": settings.APP_ENV,
                "service.role": process_role,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(_span_exporter()))
    trace.set_tracer_provider(provider)
    return True


def setup_opentelemetry(
    app: FastAPI | None = None,
    *,
    engine: AsyncEngine | None = None,
    process_role: str = "api",
) -> None:
    """Trace inbound HTTP, workflow submissions, store queries and Celery tasks."""
    if not settings.OTEL_ENABLED:
        return
    try:
        if not _install_tracer_provider(process_role):
            return
    except ImportError as exc:
        logger.info("OpenTelemetry disabled (packages missing): %s", exc)
        return

    if app is not None:
        try:
            from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

            FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")
        except ImportError as exc:
            logger.info("FastAPI OTel instrumentation unavailable: %s", exc)

    if engine is not None:
        try:
            from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

            SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
        except ImportError as exc:
            logger.info("SQLAlchemy OTel instrumentation unavailable: %s", exc)

    try:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor().instrument()
    except ImportError as exc:
        logger.info("HTTPX OTel instrumentation unavailable: %s", exc)

    if process_role == "worker":
        try:
            from opentelemetry.instrumentation.celery import CeleryInstrumentor

            CeleryInstrumentor().instrument()
        except ImportError as exc:
            logger.info("Celery OTel instrumentation unavailable: %s", exc)
