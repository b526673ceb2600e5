"""
Metrics instrumentation wrapper.

Prometheus registry for the application metrics.
"""
import logging
from functools import wraps
import time

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, REGISTRY

logger = logging.getLogger(__name__)


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics.
    """

    def __init__(self, registry=REGISTRY):
        """Initialize metrics registry."""
        self._registry = registry
        self._setup_metrics()

    @property
    def registry(self):
        """CollectorRegistry the metrics are registered in."""
        return self._registry

    def _create_counter(self, name, description, labels=None):
        """Create a counter metric."""
        return Counter(name, description, labels or [], registry=self._registry)

    def _create_histogram(self, name, description, labels=None, buckets=None):
        """Create a histogram metric."""
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets, registry=self._registry)
        return Histogram(name, description, labels or [], registry=self._registry)

    def _create_gauge(self, name, description, labels=None):
        """Create a gauge metric."""
        return Gauge(name, description, labels or [], registry=self._registry)

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = self._create_counter(
            'http_requests_total',
            'Total HTTP requests',
            ['path', 'method', 'status']
        )

        self.http_request_duration_seconds = self._create_histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['path', 'method'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Surveillance Metrics
        # ===================================================================
        self.surveillance_plans_created_total = self._create_counter(
            'surveillance_plans_created_total',
            'Surveillance plans created',
            ['kind']
        )

        self.surveillance_transition_total = self._create_counter(
            'surveillance_transition_total',
            'Surveillance plan status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.surveillance_results_recorded_total = self._create_counter(
            'surveillance_results_recorded_total',
            'Analysis results recorded on surveillance plans',
            ['result']  # success, idempotent, conflict, rejected
        )

        self.surveillance_conflicts_total = self._create_counter(
            'surveillance_conflicts_total',
            'Concurrent writes rejected on surveillance plans',
            ['operation']
        )

        self.surveillance_alerts_open = self._create_gauge(
            'surveillance_alerts_open',
            'Active surveillance plans per urgency tier at last scan',
            ['tier']
        )

        self.surveillance_alert_scan_duration_seconds = self._create_histogram(
            'surveillance_alert_scan_duration_seconds',
            'Duration of the periodic surveillance alert scan',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.surveillance_alert_scan_duration_seconds)
            def scan_surveillance_alerts():
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = time.time() - start_time
                    histogram_metric.observe(duration)
            return wrapper
        return decorator


def build_isolated_registry():
    """Return a MetricsRegistry bound to a private CollectorRegistry (for tests)."""
    return MetricsRegistry(registry=CollectorRegistry())


# Global metrics instance
metrics = MetricsRegistry()
