from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

BUNDLE_OPERATIONS = Counter(
    "ota_bundle_operations_total",
    "Bundle lifecycle operations by outcome",
    ["operation", "outcome"],
)
OBJECT_DELETES = Counter(
    "ota_object_deletes_total",
    "Object store key deletions",
    ["status"],
)
SIZE_CACHE_LOOKUPS = Counter(
    "ota_size_cache_lookups_total",
    "Bundle size cache lookups",
    ["result"],
)


def observe_operation(operation: str, success: bool, partial: bool = False) -> None:
    if not success:
        outcome = "failure"
    elif partial:
        outcome = "partial"
    else:
        outcome = "success"
    BUNDLE_OPERATIONS.labels(operation=operation, outcome=outcome).inc()
