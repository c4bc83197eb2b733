"""Metrics collection for the watcher console.

Provides a thin convenience wrapper around ``prometheus_client`` so the
gateway, the schema adapter and the session cache record metrics
consistently.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A registry is kept per collector (inject one per test to stay isolated)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)

    Exposes typed helpers for common events to keep label sets consistent.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests served by the console',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.backend_requests = Counter(
            'watcher_backend_requests_total',
            'Outbound calls to the introspection backend',
            ['operation', 'outcome'],
            registry=self.registry
        )

        self.backend_duration = Histogram(
            'watcher_backend_request_duration_seconds',
            'Outbound call duration',
            ['operation'],
            registry=self.registry
        )

        self.adaptations = Counter(
            'watcher_adaptations_total',
            'Raw payload adaptations by detected schema version',
            ['schema_version', 'outcome'],
            registry=self.registry
        )

        self.cache_hits = Counter(
            'watcher_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'watcher_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

        self.active_sessions = Gauge(
            'watcher_active_sessions',
            'Browsing sessions currently holding a result cache',
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_backend_request(self, operation: str, outcome: str, duration: float) -> None:
        """Record one outbound call; ``outcome`` is ``ok`` or an error class name."""
        self.backend_requests.labels(operation=operation, outcome=outcome).inc()
        self.backend_duration.labels(operation=operation).observe(duration)

    def record_adaptation(self, schema_version: str, outcome: str) -> None:
        """Record an adaptation attempt."""
        self.adaptations.labels(schema_version=schema_version, outcome=outcome).inc()

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def set_active_sessions(self, count: int) -> None:
        """Record the number of live sessions."""
        self.active_sessions.set(count)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


def create_metrics_collector(service_name: str) -> MetricsCollector:
    """Create a metrics collector with its own registry."""
    logger.debug("Metrics collector created", service=service_name)
    return MetricsCollector(service_name)
