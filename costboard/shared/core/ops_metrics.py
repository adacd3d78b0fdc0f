"""
Operational metrics for costboard.

Prometheus counters/histograms for API errors and upstream Cost Explorer
traffic. HTTP request metrics come from prometheus-fastapi-instrumentator.
"""

from prometheus_client import Counter, Histogram

API_ERRORS_TOTAL = Counter(
    "costboard_api_errors_total",
    "Total API errors returned to clients",
    ["path", "method", "status_code"],
)

UPSTREAM_QUERIES_TOTAL = Counter(
    "costboard_upstream_queries_total",
    "Cost Explorer queries issued, by query kind and outcome",
    ["query", "outcome"],
)

UPSTREAM_QUERY_DURATION = Histogram(
    "costboard_upstream_query_duration_seconds",
    "Latency of Cost Explorer queries including pagination",
    ["query"],
    buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)
