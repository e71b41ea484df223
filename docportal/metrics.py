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

FILE_REPLACE_TOTAL = Counter(
    "file_replace_total",
    "File replace operations by final state",
    ["outcome"],
)
FILE_REPLACE_DURATION = Histogram(
    "file_replace_duration_seconds",
    "File replace duration",
    ["outcome"],
)
FILE_REPLACE_CLEANUP_FAILURES = Counter(
    "file_replace_cleanup_failures_total",
    "Staging objects that could not be removed after a replace",
)
STAGING_OBJECTS_SWEPT = Counter(
    "staging_objects_swept_total",
    "Orphaned staging objects removed by the sweep",
    ["bucket"],
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)


def observe_file_replace(outcome: str, duration: float) -> None:
    FILE_REPLACE_TOTAL.labels(outcome=outcome).inc()
    FILE_REPLACE_DURATION.labels(outcome=outcome).observe(duration)
