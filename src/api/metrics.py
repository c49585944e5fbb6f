import time

from prometheus_client import Counter, Histogram, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "mission_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "mission_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

TASKS_CREATED_TOTAL = get_or_create_metric(
    "mission_tasks_created_total", "Total missions created", Counter
)

IMAGE_ANALYSES_TOTAL = get_or_create_metric(
    "mission_image_analyses_total",
    "Image description calls",
    Counter,
    labelnames=["status"],
)

IMAGE_CANDIDATES_TOTAL = get_or_create_metric(
    "mission_image_candidates_total",
    "Candidate missions extracted from images, by insert result",
    Counter,
    labelnames=["result"],
)


def record_request(endpoint: str, status: str, started: float) -> None:
    """Best-effort request accounting; metric failures never break a request."""
    try:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
        REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - started)
    except Exception:
        pass
