"""
Prometheus metrics for the GeoLite lookup API
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

from ..config import API_VERSION

# Build info
BUILD_INFO = Gauge(
    'geolite_build_info',
    'Build information',
    ['version']
)

# Request counters
REQUESTS_TOTAL = Counter(
    'geolite_requests_total',
    'Total number of HTTP requests',
    ['status_class']
)

LOOKUPS_TOTAL = Counter(
    'geolite_lookups_total',
    'Total number of address lookups by result',
    ['result']
)

# Refresh pipeline
REFRESH_TOTAL = Counter(
    'geolite_refresh_total',
    'Total number of database refresh attempts by outcome',
    ['outcome']
)

REFRESH_DURATION_SECONDS = Histogram(
    'geolite_refresh_duration_seconds',
    'Duration of database refresh attempts',
    buckets=[1, 5, 15, 30, 60, 120, 300]
)

# Active snapshot
SNAPSHOT_LOADED = Gauge(
    'geolite_snapshot_loaded',
    'Whether a database snapshot is installed (1=yes, 0=no)'
)

SNAPSHOT_BUILD_TIMESTAMP = Gauge(
    'geolite_snapshot_build_timestamp',
    'Build epoch of the active database snapshot'
)

SNAPSHOT_LOADED_TIMESTAMP = Gauge(
    'geolite_snapshot_loaded_timestamp',
    'Unix timestamp at which the active snapshot was installed'
)


class PrometheusMetrics:
    """Prometheus metrics manager"""

    def __init__(self):
        BUILD_INFO.labels(version=API_VERSION).set(1)

    def increment_requests(self, status_code: int):
        """Increment request counter by status class"""
        if 200 <= status_code < 300:
            status_class = "2xx"
        elif 400 <= status_code < 500:
            status_class = "4xx"
        elif 500 <= status_code < 600:
            status_class = "5xx"
        else:
            status_class = "other"
        REQUESTS_TOTAL.labels(status_class=status_class).inc()

    def increment_lookups(self, result: str):
        LOOKUPS_TOTAL.labels(result=result).inc()

    def record_refresh(self, outcome: str, duration_seconds: float):
        REFRESH_TOTAL.labels(outcome=outcome).inc()
        REFRESH_DURATION_SECONDS.observe(duration_seconds)

    def set_snapshot(self, build_epoch: int, loaded_at: float):
        SNAPSHOT_LOADED.set(1)
        SNAPSHOT_BUILD_TIMESTAMP.set(build_epoch)
        SNAPSHOT_LOADED_TIMESTAMP.set(loaded_at)

    def get_metrics(self) -> bytes:
        """Get metrics in Prometheus format"""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get Prometheus content type"""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
