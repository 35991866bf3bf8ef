"""Prometheus metric definitions for the notification sync service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


notification_polls_total = Counter(
    "notification_polls_total",
    "Poll cycles by outcome",
    ["service", "result"],
)
notification_poll_seconds = Histogram(
    "notification_poll_seconds",
    "Poll cycle duration seconds",
    ["service"],
)
notifications_presented_total = Counter(
    "notifications_presented_total",
    "Transient notifications presented",
    ["service", "category"],
)
duplicate_notifications_skipped_total = Counter(
    "duplicate_notifications_skipped_total",
    "Classified notifications already in the seen-set",
    ["service", "category"],
)
notifications_dropped_total = Counter(
    "notifications_dropped_total",
    "Notifications excluded before presentation",
    ["service", "category", "reason"],
)
notification_mark_read_failures_total = Counter(
    "notification_mark_read_failures_total",
    "Remote mark-read calls that failed",
    ["service", "category"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
