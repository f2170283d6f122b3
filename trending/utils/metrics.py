"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Gauge, Histogram

# Cache metrics
cache_requests_total = Counter(
    "trending_cache_requests_total",
    "Total number of get_or_set lookups",
    ["result"],
)

cache_evictions_total = Counter(
    "trending_cache_evictions_total",
    "Total number of cache entries removed before being overwritten",
    ["reason"],
)

cache_entries = Gauge(
    "trending_cache_entries",
    "Number of entries currently held in the cache",
)

# Ranking metrics
ranking_duration_seconds = Histogram(
    "trending_ranking_duration_seconds",
    "Time spent computing a ranking from the content source",
    ["pipeline"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ranking_failures_total = Counter(
    "trending_ranking_failures_total",
    "Total number of failed ranking computations",
    ["pipeline"],
)
