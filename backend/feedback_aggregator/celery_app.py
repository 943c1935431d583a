"""Celery application — RabbitMQ broker, Redis result backend.

Beat drives the relay loop on a timer; one pass per tick.
"""
from __future__ import annotations

from celery import Celery, signals
from kombu import Exchange, Queue

from feedback_aggregator.config import settings
from feedback_aggregator.db import engine
from feedback_aggregator.logging_config import setup_logging
from feedback_aggregator.observability import setup_opentelemetry

celery = Celery(
    "feedback_aggregator",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
)


@signals.setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    setup_logging("worker")


# Worker tracing; no-op unless OTEL_ENABLED.
setup_opentelemetry(engine=engine, process_role="worker")

# ── Serialisation ──
celery.conf.accept_content = ["json"]
celery.conf.task_serializer = "json"
celery.conf.result_serializer = "json"
celery.conf.timezone = "UTC"
celery.conf.enable_utc = True

# ── Reliability ──
celery.conf.task_acks_late = True
celery.conf.worker_prefetch_multiplier = 1
celery.conf.task_reject_on_worker_lost = True

# ── Exchanges & Queues ──
default_exchange = Exchange("feedback", type="direct")

celery.conf.task_queues = (
    Queue("relay", default_exchange, routing_key="relay"),
    Queue("ops", default_exchange, routing_key="ops"),
)

celery.conf.task_default_queue = "relay"
celery.conf.task_default_exchange = "feedback"
celery.conf.task_default_routing_key = "relay"

# ── Task routes ──
celery.conf.task_routes = {
    "feedback_aggregator.workers.relay.run_relay": {"queue": "relay"},
    "feedback_aggregator.workers.backlog_metrics.run_backlog_probe": {"queue": "ops"},
}

# ── Beat Schedule ──
celery.conf.beat_schedule = {
    "relay-pending-feedback": {
        "task": "feedback_aggregator.workers.relay.run_relay",
        "schedule": settings.RELAY_INTERVAL_S,
        # A pass that outlives its interval is dropped, not stacked.
        "options": {"expires": settings.RELAY_INTERVAL_S},
    },
    "pending-backlog-probe": {
        "task": "feedback_aggregator.workers.backlog_metrics.run_backlog_probe",
        "schedule": settings.BACKLOG_PROBE_INTERVAL_S,
    },
}

# ── Task modules (imported by the worker at start-up) ──
celery.conf.imports = (
    "feedback_aggregator.workers.relay",
    "feedback_aggregator.workers.backlog_metrics",
)
