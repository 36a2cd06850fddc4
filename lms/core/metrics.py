"""Prometheus metric inventory.

Every counter and histogram the service exports is declared here; the
modules that own the behaviour import the metric and increment it at the
point where the event actually happens (after the write succeeded).

HTTP metrics are filled in by MetricsMiddleware.  The learning metrics
below answer the questions operators ask about the completion engine:

  - how many lessons/courses/paths are being completed, and how?
  - how often are completions rejected, and for which reason?
  - are certificates and badges being issued at the expected rate?
  - are concurrent requests racing each other (conflicts)?
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics
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
# Learning engine metrics
# ---------------------------------------------------------------------------

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Lessons marked completed",
    ["method"],  # manual|quiz|auto
)

COMPLETION_REJECTIONS = Counter(
    "completion_rejections_total",
    "Completion attempts refused by threshold or anti-cheat checks",
    # insufficient_progress|insufficient_watch_time|incomplete_lessons|below_passing_score
    ["reason"],
)

QUIZ_SUBMISSIONS = Counter(
    "quiz_submissions_total",
    "Quiz attempts submitted",
    ["outcome"],  # passed|failed
)

COURSE_COMPLETIONS = Counter(
    "course_completions_total",
    "Course enrollments that reached the completed state",
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates issued",
    ["kind"],  # course|path
)

BADGES_AWARDED = Counter(
    "badges_awarded_total",
    "Badges awarded automatically",
)

PATH_COMPLETIONS = Counter(
    "learning_path_completions_total",
    "Learning path enrollments that reached the completed state",
)

CONCURRENCY_CONFLICTS = Counter(
    "concurrency_conflicts_total",
    "Duplicate writes detected through unique constraints",
    ["operation"],  # enroll|quiz_attempt|training_record|certificate|badge|path_enroll
)
