"""Prometheus metric definitions for the Fundgate backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# ── Application info ────────────────────────────────────────────────
app_info = Info("fundgate", "Fundgate application metadata")

# ── HTTP request metrics ────────────────────────────────────────────
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"],
)

# ── Campaign ledger metrics ─────────────────────────────────────────
campaigns_created_total = Counter(
    "fundgate_campaigns_created_total",
    "Campaigns created",
)

campaigns_cancelled_total = Counter(
    "fundgate_campaigns_cancelled_total",
    "Campaigns cancelled by their creator",
)

contributions_total = Counter(
    "fundgate_contributions_total",
    "Accepted contributions",
)

contributed_amount_total = Counter(
    "fundgate_contributed_amount_total",
    "Sum of accepted contribution amounts (smallest value unit)",
)

milestone_releases_total = Counter(
    "fundgate_milestone_releases_total",
    "Milestones released to campaign creators",
)

released_amount_total = Counter(
    "fundgate_released_amount_total",
    "Sum of milestone amounts paid out to creators",
)

refunds_total = Counter(
    "fundgate_refunds_total",
    "Refunds paid back to contributors",
)

refunded_amount_total = Counter(
    "fundgate_refunded_amount_total",
    "Sum of refunded amounts",
)

votes_total = Counter(
    "fundgate_votes_total",
    "Milestone votes recorded",
    ["support"],
)

operations_rejected_total = Counter(
    "fundgate_operations_rejected_total",
    "Ledger operations rejected with a domain error",
    ["operation", "code"],
)

transfer_failures_total = Counter(
    "fundgate_transfer_failures_total",
    "Settlement transfers that failed and rolled the operation back",
    ["operation"],
)
