"""Prometheus metrics for upstream resilience, caching and lookup outcomes"""

from prometheus_client import Counter, Histogram

# Upstream call metrics
upstream_attempt_counter = Counter(
    "authorizer_attempts_total",
    "Authorizer call attempts",
    ["endpoint", "outcome"],  # success | retryable | non_retryable
)

upstream_latency_histogram = Histogram(
    "authorizer_attempt_latency_seconds",
    "Authorizer attempt response time",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

retries_exhausted_counter = Counter(
    "authorizer_retries_exhausted_total",
    "Logical calls that failed after every retry",
    ["endpoint"],
)

# Circuit breaker metrics
circuit_open_counter = Counter(
    "circuit_breaker_opened_total",
    "Circuit transitions to OPEN",
    ["endpoint"],
)

circuit_rejection_counter = Counter(
    "circuit_breaker_rejections_total",
    "Calls refused without I/O because the circuit was open",
    ["endpoint"],
)

# Conditions metrics
cache_lookup_counter = Counter(
    "conditions_cache_lookups_total",
    "Conditions cache lookups",
    ["result"],  # hit | miss
)

conditions_result_counter = Counter(
    "conditions_results_total",
    "Conditions lookups by outcome",
    ["status", "reason"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_conditions_result(status: str, reason: str | None) -> None:
    """Record lookup outcome; reason is 'none' for available plans"""
    conditions_result_counter.labels(status=status, reason=reason or "none").inc()
