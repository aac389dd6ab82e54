"""
Prometheus metrics collection for the area insights API.
"""

from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY
)
from typing import Dict
import re
import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import logging

logger = logging.getLogger(__name__)


class InsightsMetrics:
    """Metrics for HTTP traffic, caching, provider lookups and background work."""

    def __init__(self):
        # API Metrics
        self.http_requests_total = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status_code']
        )

        self.http_request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method', 'endpoint'],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        # Cache Metrics
        self.cache_operations_total = Counter(
            'cache_operations_total',
            'Total cache operations',
            ['operation', 'cache_type', 'result']
        )

        self.cache_hit_ratio = Gauge(
            'cache_hit_ratio',
            'Cache hit ratio',
            ['cache_type']
        )

        # Places provider
        self.places_lookups_total = Counter(
            'places_lookups_total',
            'Total places provider lookups',
            ['category', 'status']
        )

        self.places_lookup_duration = Histogram(
            'places_lookup_duration_seconds',
            'Places provider lookup duration in seconds',
            ['category'],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        # Business Metrics
        self.insights_served = Counter(
            'area_insights_served_total',
            'Total area insights responses served',
            ['from_cache', 'personalized']
        )

        self.background_tasks_total = Counter(
            'background_tasks_total',
            'Fire-and-forget tasks by outcome',
            ['outcome']
        )

        # Error Metrics
        self.errors_total = Counter(
            'errors_total',
            'Total errors',
            ['error_type', 'component', 'severity']
        )

        self.concurrent_requests = Gauge(
            'concurrent_requests_active',
            'Number of concurrent requests being processed'
        )


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP metrics automatically."""

    def __init__(self, app, collector: "InsightsMetrics" = None):
        super().__init__(app)
        self.metrics = collector or metrics
        self.concurrent_requests = 0

    async def dispatch(self, request: Request, call_next):
        self.concurrent_requests += 1
        self.metrics.concurrent_requests.set(self.concurrent_requests)

        start_time = time.time()
        method = request.method
        endpoint = self._normalize_path(request.url.path)

        try:
            response = await call_next(request)

            self.metrics.http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status_code=response.status_code
            ).inc()

            self.metrics.http_request_duration.labels(
                method=method,
                endpoint=endpoint
            ).observe(time.time() - start_time)

            return response

        except Exception as e:
            self.metrics.errors_total.labels(
                error_type=type(e).__name__,
                component='api',
                severity='error'
            ).inc()
            raise
        finally:
            self.concurrent_requests -= 1
            self.metrics.concurrent_requests.set(self.concurrent_requests)

    def _normalize_path(self, path: str) -> str:
        """Collapse ids in paths to keep label cardinality low."""
        if path.startswith("/api/v1/preferences/"):
            suffix = "/analytics" if path.endswith("/analytics") else ""
            return "/api/v1/preferences/{user_id}" + suffix
        path = re.sub(r'/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', '/{id}', path)
        return re.sub(r'/\d+(?=/|$)', '/{id}', path)


class CacheMetricsTracker:
    """Track cache performance metrics."""

    def __init__(self, metrics: InsightsMetrics):
        self.metrics = metrics
        self.cache_stats: Dict[str, Dict[str, int]] = {}

    def record_cache_operation(self, operation: str, cache_type: str, result: str):
        """Record cache operation (hit/miss/error)."""
        self.metrics.cache_operations_total.labels(
            operation=operation,
            cache_type=cache_type,
            result=result
        ).inc()

        self._update_hit_ratio(cache_type, result)

    def _update_hit_ratio(self, cache_type: str, result: str):
        if cache_type not in self.cache_stats:
            self.cache_stats[cache_type] = {'hits': 0, 'misses': 0}

        if result == 'hit':
            self.cache_stats[cache_type]['hits'] += 1
        elif result == 'miss':
            self.cache_stats[cache_type]['misses'] += 1

        stats = self.cache_stats[cache_type]
        total = stats['hits'] + stats['misses']

        if total > 0:
            self.metrics.cache_hit_ratio.labels(cache_type=cache_type).set(stats['hits'] / total)


# Global metrics instance
metrics = InsightsMetrics()
cache_tracker = CacheMetricsTracker(metrics)


def get_metrics_response() -> Response:
    """Generate Prometheus metrics response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )
