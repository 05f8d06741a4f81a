"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Histogram

# Analytics refresh metrics
analytics_refresh_total = Counter(
    "analytics_refresh_total",
    "Total analytics refresh attempts",
    labelnames=["metric_type", "outcome"],  # outcome: completed, cooldown, error
)

analytics_refresh_duration_seconds = Histogram(
    "analytics_refresh_duration_seconds",
    "Time spent computing and storing analytics",
    labelnames=["metric_type"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

analytics_cooldown_rejections_total = Counter(
    "analytics_cooldown_rejections_total",
    "Refresh requests rejected because the metric is cooling down",
    labelnames=["metric_type"],
)

# Dashboard widget metrics
dashboard_widget_cache_total = Counter(
    "dashboard_widget_cache_total",
    "Dashboard widget cache lookups",
    labelnames=["widget", "result"],  # result: hit, miss
)
