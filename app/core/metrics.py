"""
Prometheus metrics for the match sync API.

Metrics exposed:
- Upstream provider success/failure counters and latency histogram
- Retry attempt counter
- Cache tier outcomes for the single-match and list flows
- Persistence failures by operation
- Scheduled sync record outcomes
- Database connection pool and scheduler gauges
"""
from prometheus_client import Counter, Gauge, Histogram

# Upstream Provider Metrics
upstream_requests_success_total = Counter(
    "upstream_requests_success_total",
    "Total successful upstream provider requests"
)

upstream_requests_failure_total = Counter(
    "upstream_requests_failure_total",
    "Total failed upstream provider requests (after retries)",
    ["error_type"]
)

upstream_retry_attempts_total = Counter(
    "upstream_retry_attempts_total",
    "Total upstream attempts that failed and were retried",
    ["error_type"]
)

upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Upstream provider request latency in seconds (all attempts)"
)

# Orchestrator Metrics
match_cache_results_total = Counter(
    "match_cache_results_total",
    "Which tier answered a match request",
    ["flow", "outcome"]  # flow: single|list; outcome: hit|upstream|stale|emergency|quick_purchase|empty|not_found
)

persistence_errors_total = Counter(
    "persistence_errors_total",
    "Failed reads or writes against the match store",
    ["operation"]
)

match_sync_records_total = Counter(
    "match_sync_records_total",
    "Records processed by the scheduled sync",
    ["status", "result"]  # result: synced|skipped|error
)

# Database Metrics
db_pool_connections = Gauge(
    "db_pool_connections",
    "Number of database connections in the pool"
)

db_pool_connections_checked_out = Gauge(
    "db_pool_connections_checked_out",
    "Number of checked out database connections"
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the sync scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_db_pool_metrics():
    """Update database connection pool metrics from the SQLAlchemy engine."""
    from app.core.database import engine

    pool = engine.pool
    # SQLite pools do not report sizes
    try:
        db_pool_connections.set(pool.size())
        db_pool_connections_checked_out.set(pool.checkedout())
    except AttributeError:
        pass


def update_scheduler_metrics():
    """Update scheduler status gauges."""
    from app.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler_running.set(1)
        if scheduler.scheduler:
            scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)


def record_upstream_success(duration_seconds: float):
    """Record a successful upstream request."""
    upstream_requests_success_total.inc()
    upstream_request_duration_seconds.observe(duration_seconds)


def record_upstream_failure(error_type: str, duration_seconds: float):
    """Record an upstream request that failed after exhausting retries."""
    upstream_requests_failure_total.labels(error_type=error_type).inc()
    upstream_request_duration_seconds.observe(duration_seconds)


def record_upstream_retry(error_type: str):
    """Record one failed attempt that will be retried."""
    upstream_retry_attempts_total.labels(error_type=error_type).inc()


def record_cache_result(flow: str, outcome: str):
    """Record which tier answered a single-match or list request."""
    match_cache_results_total.labels(flow=flow, outcome=outcome).inc()


def record_persistence_error(operation: str):
    """Record a failed store read or write."""
    persistence_errors_total.labels(operation=operation).inc()


def record_sync_records(status: str, synced: int, skipped: int, errors: int):
    """Record the per-record outcome counts of a scheduled sync run."""
    if synced:
        match_sync_records_total.labels(status=status, result="synced").inc(synced)
    if skipped:
        match_sync_records_total.labels(status=status, result="skipped").inc(skipped)
    if errors:
        match_sync_records_total.labels(status=status, result="error").inc(errors)
