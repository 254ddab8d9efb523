"""Application metrics using the Prometheus client library.

All metrics are defined here so there is a single inventory of what the
service measures.  Modules import the metric they own and increment it at
the point of action.

HTTP metrics are filled in by MetricsMiddleware.  The domain counters
below answer the questions operators ask about this service:

  - How many code redemptions are failing, and why?
      sum by (result) (rate(org_code_redemptions_total[5m]))
  - Are seat pools churning?
      rate(license_seat_operations_total{operation="allocate"}[1h])
  - How many users did the last revocation cut off?
      increase(code_cascade_users_total{action="revoke"}[1h])
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
# Domain metrics
# ---------------------------------------------------------------------------

CODE_REDEMPTIONS = Counter(
    "org_code_redemptions_total",
    "Registration code validations and redemptions by result",
    ["result"],  # "valid", "used", or the rejection reason slug
)

SEAT_OPERATIONS = Counter(
    "license_seat_operations_total",
    "Seat pool operations by kind",
    ["operation"],  # allocate|allocate_rejected|deallocate|suspend|resume
)

CODE_CASCADES = Counter(
    "code_cascade_total",
    "Code revoke/reactivate cascades executed",
    ["action"],  # revoke|reactivate
)

CODE_CASCADE_USERS = Counter(
    "code_cascade_users_total",
    "Members touched by code revoke/reactivate cascades",
    ["action"],
)
