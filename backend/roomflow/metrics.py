from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "roomflow_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
REQUEST_LATENCY = Histogram(
    "roomflow_request_latency_seconds", "Latency of HTTP requests", ["method", "path"]
)

# Application-level domain metrics
TRANSITION_COUNT = Counter(
    "roomflow_transitions_total", "Lifecycle transition attempts", ["action", "outcome"]
)
CONFLICTS_DETECTED = Counter(
    "roomflow_conflicts_detected_total", "Room conflicts that blocked a reservation"
)
EXPANSION_SIZE = Histogram(
    "roomflow_expansion_size",
    "Occurrences emitted per expansion",
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 10000),
)
