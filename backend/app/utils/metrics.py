"""Prometheus metrics for server actions, exports and caches."""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Server action metrics
action_latency_ms = Histogram(
    "action_latency_ms",
    "Server action latency in milliseconds",
    ["action", "outcome"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

action_outcomes_total = Counter(
    "action_outcomes_total",
    "Total server action outcomes",
    ["action", "outcome"],
)

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Total requests rejected by a rate limiter",
    ["bucket"],
)

downstream_errors_total = Counter(
    "downstream_errors_total",
    "Total failures reported by the database or identity provider",
    ["source"],
)

csv_exports_total = Counter(
    "csv_exports_total",
    "Total CSV report exports",
    ["report"],
)

memo_cache_hits_total = Counter(
    "memo_cache_hits_total",
    "Total memoized query cache hits",
    ["namespace"],
)


class PrometheusActionMetrics:
    """Prometheus-based action metrics implementation.

    Recording failures are logged and dropped so metrics never fail a request.
    """

    def record_outcome(self, action: str, outcome: str, latency_ms: float) -> None:
        """Record action latency and outcome."""
        try:
            action_latency_ms.labels(action=action, outcome=outcome).observe(latency_ms)
            action_outcomes_total.labels(action=action, outcome=outcome).inc()
        except ValueError:
            logger.exception("Failed to record action metrics")

    def inc_rate_limited(self, bucket: str) -> None:
        """Increment rate-limit rejection counter."""
        try:
            rate_limit_rejections_total.labels(bucket=bucket).inc()
        except ValueError:
            logger.exception("Failed to record rate-limit metric")

    def inc_downstream_error(self, source: str) -> None:
        """Increment downstream error counter."""
        try:
            downstream_errors_total.labels(source=source).inc()
        except ValueError:
            logger.exception("Failed to record downstream error metric")

    def inc_export(self, report: str) -> None:
        """Increment CSV export counter."""
        try:
            csv_exports_total.labels(report=report).inc()
        except ValueError:
            logger.exception("Failed to record export metric")


metrics = PrometheusActionMetrics()
