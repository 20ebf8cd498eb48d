"""Prometheus metric inventory.

Every metric the service exports is declared here; the owning modules
import the object and increment/observe it where the event happens.

  Counter    monotonically increasing totals (requests, cache hits)
  Gauge      point-in-time values (requests in flight, cache size)
  Histogram  bucketed observations (request latency)

Label values are kept to small closed sets.  A label per student or per
unit id would create one time series per learner and blow up the
Prometheus TSDB, so ids go into logs, never into labels.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # 5ms cache hits ... 1s+ means a slow store round-trip
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Caches (QueryCache on the server, TreeCache on the client)
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache lookups and evictions by cache name and result",
    ["cache", "operation"],  # operation: hit|miss|evict|expire|invalidate
)

CACHE_ENTRIES = Gauge(
    "cache_entries",
    "Entries currently held by a cache",
    ["cache"],
)

# ---------------------------------------------------------------------------
# Progress engine
# ---------------------------------------------------------------------------

PROGRESS_WRITES = Counter(
    "progress_writes_total",
    "Progress document writes by operation",
    ["operation"],  # visit|calculate|chapter|bulk|celebration
)

CELEBRATIONS_MARKED = Counter(
    "celebrations_marked_total",
    "Congratulation latches set, by kind",
    ["kind"],  # chapter|unit|subject
)

ITEM_COUNT_FAILURES = Counter(
    "item_count_failures_total",
    "Taxonomy lookups that failed while counting chapter items",
)
