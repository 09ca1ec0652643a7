"""
Shared metrics configuration for the TursoConnector.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, start_http_server


class MetricsCollector:
    """Centralized metrics collector for the connector."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up connector metrics."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Bus metrics
        self._metrics["messages_handled_total"] = Counter(
            "messages_handled_total",
            "Total bus messages handled",
            ["subject", "status"],
            registry=self.registry
        )

        self._metrics["message_handling_duration_seconds"] = Histogram(
            "message_handling_duration_seconds",
            "Bus message handling duration in seconds",
            ["subject"],
            registry=self.registry
        )

        # Database metrics
        self._metrics["db_queries_total"] = Counter(
            "db_queries_total",
            "Total SQL statements sent to the remote store",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["db_query_duration_seconds"] = Histogram(
            "db_query_duration_seconds",
            "SQL statement round-trip duration in seconds",
            registry=self.registry
        )

        self._metrics["retry_attempts_total"] = Counter(
            "retry_attempts_total",
            "Resilient executor attempts by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["query_cache_entries"] = Gauge(
            "query_cache_entries",
            "Number of cached read-query results",
            registry=self.registry
        )

        self._metrics["available_connections"] = Gauge(
            "available_connections",
            "Free connection slots towards the remote store",
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check evaluations",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type"],
            registry=self.registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def record_message(self, subject: str, status: str, duration: float):
        """Record a handled bus message."""
        self._metrics["messages_handled_total"].labels(subject=subject, status=status).inc()
        self._metrics["message_handling_duration_seconds"].labels(subject=subject).observe(duration)

    def record_query(self, outcome: str, duration: float):
        """Record a SQL round-trip."""
        self._metrics["db_queries_total"].labels(outcome=outcome).inc()
        self._metrics["db_query_duration_seconds"].observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str):
        """Record error metrics."""
        self._metrics["errors_total"].labels(error_type=error_type).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            with self._lock:
                (metric.labels(**labels) if labels else metric).set(value)

    def get_sample(self, metric_name: str, **labels) -> Optional[float]:
        """Read back a sample value from this collector's registry."""
        return self.registry.get_sample_value(metric_name, labels or None)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
