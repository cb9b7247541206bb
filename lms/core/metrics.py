"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import and update them.  Prometheus scrapes /metrics.

Label values are kept low-cardinality: routes are labelled by their
template (``/v1/courses/{course_id}/enroll``), never by concrete IDs.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
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
# Enrollment and progress
# ---------------------------------------------------------------------------

ENROLLMENTS_CREATED = Counter(
    "enrollments_created_total",
    "Enrollments created, by how the student got in",
    ["mode"],  # self|admin|payment
)

ENROLLMENT_REJECTIONS = Counter(
    "enrollment_rejections_total",
    "Enrollment attempts refused by the ledger",
    ["reason"],  # already_enrolled|limit_reached|payment_required|not_a_student
)

LESSON_PROGRESS_UPDATES = Counter(
    "lesson_progress_updates_total",
    "Lesson completion toggles recorded",
    ["completed"],  # "true" or "false"
)

# ---------------------------------------------------------------------------
# Payments and external providers
# ---------------------------------------------------------------------------

PAYMENT_EVENTS = Counter(
    "payment_events_total",
    "Payment state changes and rejections",
    ["source", "outcome"],  # source: order|verify|webhook
)

CREDENTIAL_REFRESHES = Counter(
    "credential_refreshes_total",
    "Access tokens fetched from an external provider",
    ["provider"],
)
