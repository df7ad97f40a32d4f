"""Prometheus metrics for the publisher scanner.

Exposed at the /metrics/prometheus endpoint.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# ============ Metrics Definitions ============

JOBS_STARTED = Counter(
    'pubscan_jobs_started_total',
    'Scan jobs accepted',
)

JOBS_FINISHED = Counter(
    'pubscan_jobs_finished_total',
    'Scan jobs that reached a terminal status',
    ['status']  # completed / failed
)

ACTIVE_JOBS = Gauge(
    'pubscan_active_jobs',
    'Scan jobs currently being processed'
)

DOMAIN_RESULTS = Counter(
    'pubscan_domain_results_total',
    'Per-domain results written',
    ['status', 'scan_method']
)

CAPTURE_FALLBACKS = Counter(
    'pubscan_capture_fallbacks_total',
    'Dynamic captures that fell back to a static fetch',
    ['error_type']  # timeout, dns, ssl, conn, http, other
)

CAPTURE_DURATION = Histogram(
    'pubscan_capture_duration_seconds',
    'Time spent capturing one domain',
    ['scan_method'],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 45, 60, 90]
)

RANK_LOOKUPS = Counter(
    'pubscan_rank_lookups_total',
    'Rank provider lookups',
    ['outcome']  # ranked / not_found / error
)

RESULT_WRITE_FALLBACKS = Counter(
    'pubscan_result_write_fallbacks_total',
    'Result rows written with the minimal column set',
    ['outcome']  # ok / failed
)


# ============ Helper Functions ============

def record_job_started():
    JOBS_STARTED.inc()
    ACTIVE_JOBS.inc()


def record_job_finished(status: str):
    JOBS_FINISHED.labels(status=status).inc()
    ACTIVE_JOBS.dec()


def record_domain_result(status: str, scan_method: str):
    DOMAIN_RESULTS.labels(status=status, scan_method=scan_method or 'none').inc()


def record_capture(scan_method: str, duration: float):
    CAPTURE_DURATION.labels(scan_method=scan_method).observe(duration)


def record_capture_fallback(error_type: str):
    CAPTURE_FALLBACKS.labels(error_type=error_type).inc()


def record_rank_lookup(outcome: str):
    RANK_LOOKUPS.labels(outcome=outcome).inc()


def record_write_fallback(outcome: str):
    RESULT_WRITE_FALLBACKS.labels(outcome=outcome).inc()


def get_metrics():
    """Get current metrics in Prometheus format.

    Returns:
        bytes: Prometheus-formatted metrics
    """
    return generate_latest()


def get_content_type():
    """Get Prometheus content type header value."""
    return CONTENT_TYPE_LATEST
