"""Monitoring configuration for vocadeck."""
from prometheus_client import Counter, Histogram, start_http_server

# Study metrics
ratings_recorded = Counter(
    "vocadeck_ratings_total",
    "Total number of ratings applied to words",
    ["rating"],
)

leech_changes = Counter(
    "vocadeck_leech_changes_total",
    "Total number of leech flag changes",
    ["change"],  # flagged, released, marked, unmarked
)

sessions_completed = Counter(
    "vocadeck_sessions_completed_total",
    "Total number of completed study sessions",
    ["session_type"],
)

# Queue metrics
queue_builds = Counter(
    "vocadeck_queue_builds_total",
    "Total number of queue builds",
)

queue_build_duration = Histogram(
    "vocadeck_queue_build_duration_seconds",
    "Duration of loading and building deck queues in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Store metrics
store_operations = Counter(
    "vocadeck_store_operations_total",
    "Total number of progress store operations",
    ["operation"],
)

store_errors = Counter(
    "vocadeck_store_errors_total",
    "Total number of progress store errors",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
