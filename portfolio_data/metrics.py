"""
Prometheus metrics for the portfolio data layer.

Tracks repository operations, cache effectiveness and auth operations.
"""

from prometheus_client import Counter

# Repository metrics
repository_operations_total = Counter(
    "portfolio_repository_operations_total",
    "Total repository operations",
    ["table", "operation", "status"],
)

# Cache metrics
cache_lookups_total = Counter(
    "portfolio_cache_lookups_total",
    "Total cache lookups",
    ["cache", "result"],
)

# Authentication metrics
auth_operations_total = Counter(
    "portfolio_auth_operations_total",
    "Total auth service operations",
    ["operation", "status"],
)


def track_repository_operation(table: str, operation: str, status: str) -> None:
    """Record a repository operation outcome."""
    repository_operations_total.labels(
        table=table, operation=operation, status=status
    ).inc()


def track_cache_lookup(cache: str, result: str) -> None:
    """Record a cache hit, miss or shared in-flight lookup."""
    cache_lookups_total.labels(cache=cache, result=result).inc()


def track_auth_operation(operation: str, status: str) -> None:
    """Record an auth operation outcome."""
    auth_operations_total.labels(operation=operation, status=status).inc()
