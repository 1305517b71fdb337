from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Unfurl pipeline
# ---------------------------------------------------------------------------
unfurl_requests_total = Counter(
    "unfurl_requests_total",
    "Total number of unfurl requests",
    ["status"],
)
unfurl_duration_seconds = Histogram(
    "unfurl_duration_seconds",
    "Time spent unfurling a single URL",
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 30],
)
special_provider_total = Counter(
    "special_provider_total",
    "Pages classified per embed provider",
    ["provider"],
)
image_size_lookups_total = Counter(
    "image_size_lookups_total",
    "Image dimension lookups by outcome (declared, resolved, failed)",
    ["outcome"],
)
fetch_policy_rejections_total = Counter(
    "fetch_policy_rejections_total",
    "Outbound fetches refused by the proxy-target policy",
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests to the API",
    ["method", "path", "status"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
