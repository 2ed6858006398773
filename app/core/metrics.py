"""Prometheus metrics for the report API (HTTP, report computation, cache, data quality)."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# HTTP Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
)

# Report computation metrics
reports_computed_total = Counter(
    "reports_computed_total",
    "Total reports computed (cache misses included, cache hits excluded)",
    ["report"],  # report: pnl, dashboard, customers, order_profit
)

report_compute_duration_seconds = Histogram(
    "report_compute_duration_seconds",
    "Report computation duration (load + calculate)",
    ["report"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

report_orders_processed_total = Counter(
    "report_orders_processed_total",
    "Orders fed into report calculations",
    ["report"],
)

# Cache metrics
report_cache_hits_total = Counter(
    "report_cache_hits_total",
    "Report cache hits",
    ["report"],
)

report_cache_misses_total = Counter(
    "report_cache_misses_total",
    "Report cache misses",
    ["report"],
)

# Data quality metrics
cogs_missing_line_items_total = Counter(
    "cogs_missing_line_items_total",
    "Line items without a resolvable cost at order date",
)

# System metrics
app_uptime_seconds = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)

app_info = Gauge(
    "app_info",
    "Build version and deployment environment",
    ["version", "environment"],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Unhandled errors by exception type and component",
    ["error_type", "component"],
)

# Tenant scoping violations
tenant_unscoped_query_total = Counter(
    "tenant_unscoped_query_total",
    "Total report requests rejected for missing or foreign team scope",
    ["error_type"],  # error_type: missing_team_id, foreign_store, foreign_order
)
