"""Prometheus metrics definitions for the GCP mock.

All custom metrics use the ``gcpmock_`` prefix. These are *application
level* API operation metrics; ``prometheus-fastapi-instrumentator``
provides the HTTP-level request count, latency and size metrics.

Counters reset to zero on restart, as does the store itself. Gauges are
refreshed from ``MemoryStore.stats()`` after every API call.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# API operation counter  (labels: api, operation, status)
# ---------------------------------------------------------------------------
api_operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Resource gauges
# ---------------------------------------------------------------------------
buckets_total: Gauge | None = None
objects_total: Gauge | None = None
instances_total: Gauge | None = None
operations_total: Gauge | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_received_total: Counter | None = None
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Called once when metrics are enabled. When metrics are disabled the
    module-level references stay ``None`` and nothing is registered in the
    global registry.
    """
    global _initialized
    global api_operations_total, buckets_total, objects_total
    global instances_total, operations_total
    global bytes_received_total, bytes_sent_total

    if _initialized:
        return

    api_operations_total = Counter(
        "gcpmock_api_operations_total",
        "Total API operations by API family, operation and HTTP status",
        ["api", "operation", "status"],
    )

    buckets_total = Gauge("gcpmock_buckets_total", "Number of Cloud Storage buckets")
    objects_total = Gauge("gcpmock_objects_total", "Number of objects across all buckets")
    instances_total = Gauge("gcpmock_instances_total", "Number of Cloud SQL instances")
    operations_total = Gauge(
        "gcpmock_operations_total", "Number of Cloud SQL operations recorded"
    )

    bytes_received_total = Counter(
        "gcpmock_bytes_received_total",
        "Total bytes received in request bodies",
    )

    bytes_sent_total = Counter(
        "gcpmock_bytes_sent_total",
        "Total bytes sent in response bodies",
    )

    _initialized = True


def record_operation(api: str, operation: str, status: int) -> None:
    """Count one API call. No-op when metrics are disabled."""
    if api_operations_total is not None:
        api_operations_total.labels(api=api, operation=operation, status=str(status)).inc()


def refresh_gauges(stats: dict[str, int]) -> None:
    """Set the resource gauges from a ``MemoryStore.stats()`` snapshot."""
    if buckets_total is None:
        return
    buckets_total.set(stats.get("buckets", 0))
    objects_total.set(stats.get("objects", 0))
    instances_total.set(stats.get("instances", 0))
    operations_total.set(stats.get("operations", 0))
