"""Prometheus metrics definitions."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Database retry operation metrics
db_retry_attempts_total = Counter(
    "gamevault_db_retry_attempts_total",
    "Total number of database operation retry attempts",
    ["operation_type"],
)
db_lock_errors_total = Counter(
    "gamevault_db_lock_errors_total",
    "Total number of database lock errors encountered",
)
db_retries_succeeded_total = Counter(
    "gamevault_db_retries_succeeded_total",
    "Total number of database operations that succeeded after retry",
    ["operation_type"],
)
db_retries_failed_total = Counter(
    "gamevault_db_retries_failed_total",
    "Total number of database operations that failed after all retries",
    ["operation_type"],
)
db_retry_duration_seconds = Histogram(
    "gamevault_db_retry_duration_seconds",
    "Duration of database retry operations in seconds",
    ["operation_type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Catalog client metrics
catalog_requests_total = Counter(
    "gamevault_catalog_requests_total",
    "Total number of catalog lookups",
    ["operation", "outcome"],  # operation: search, details, reviews, image; outcome: see client
)

# Matching metrics
match_decisions_total = Counter(
    "gamevault_match_decisions_total",
    "Total number of match decisions by resulting status",
    ["status"],
)

# Sidecar metrics
sidecar_writes_total = Counter(
    "gamevault_sidecar_writes_total",
    "Total number of sidecar write attempts",
    ["outcome"],  # outcome: written, failed
)
