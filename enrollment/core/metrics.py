"""Prometheus metric inventory for the enrollment service.

Every metric is defined here and imported by the module that owns the
behaviour.  HTTP metrics are populated by MetricsMiddleware; the ledger
and quiz counters are incremented by the services at the point where an
operation commits or is rejected.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Ledger metrics
# ---------------------------------------------------------------------------

PURCHASES = Counter(
    "purchases_total",
    "Purchase operations by path and outcome",
    ["path", "outcome"],  # path: direct|code|grant|checkout; outcome: error code or "ok"
)

BALANCE_CREDITS = Counter(
    "balance_credits_total",
    "Privileged balance credits committed",
)

PAYMENT_CONFIRMATIONS = Counter(
    "payment_confirmations_total",
    "Pending purchases resolved by the payment status poll",
    ["status"],  # ACTIVE|FAILED|CANCELED
)

# ---------------------------------------------------------------------------
# Assessment metrics
# ---------------------------------------------------------------------------

QUIZ_SUBMISSIONS = Counter(
    "quiz_submissions_total",
    "Quiz submissions by outcome",
    ["outcome"],  # "graded" or the rejecting error code
)

# ---------------------------------------------------------------------------
# Infrastructure metrics
# ---------------------------------------------------------------------------

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["scope"],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)
