"""Prometheus metrics for intake and relay observability."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


FEEDBACK_INGESTED_TOTAL = Counter(
    "feedback_ingested_total",
    "Feedback records persisted by intake",
    ["source"],
)

FEEDBACK_REJECTED_TOTAL = Counter(
    "feedback_rejected_total",
    "Feedback payloads refused at intake",
    ["reason"],
)

RELAY_ITEMS_TOTAL = Counter(
    "feedback_relay_items_total",
    "Relay outcomes per record",
    ["outcome"],
)

RELAY_SUBMIT_LATENCY_SECONDS = Histogram(
    "feedback_relay_submit_latency_seconds",
    "Downstream workflow submission latency",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 30),
)

RELAY_RUNS_TOTAL = Counter(
    "feedback_relay_runs_total",
    "Relay loop passes by trigger",
    ["trigger"],
)

PENDING_BACKLOG_GAUGE = Gauge(
    "feedback_pending_backlog",
    "Pending feedback records by source",
    ["source"],
)
