"""Prometheus metrics for webhook reconciliation."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

WEBHOOK_EVENTS = Counter(
    "billing_webhook_events_total",
    "Webhook deliveries by event type and outcome",
    labelnames=("event_type", "outcome"),
)

WEBHOOK_DUPLICATES = Counter(
    "billing_webhook_duplicates_total",
    "Webhook deliveries rejected as already applied",
    labelnames=("event_type",),
)

WEBHOOK_UNRESOLVED = Counter(
    "billing_webhook_unresolved_total",
    "Webhook events that could not be linked to a membership or group",
    labelnames=("event_type",),
)

WEBHOOK_PROCESSING_LATENCY = Histogram(
    "billing_webhook_processing_seconds",
    "Time spent applying one verified webhook event",
    labelnames=("event_type",),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

LEDGER_ENTRIES = Counter(
    "billing_ledger_entries_total",
    "Revenue ledger entries booked",
    labelnames=("entry_type", "currency"),
)
