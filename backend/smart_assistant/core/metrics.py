"""
Prometheus metrics for the smart assistant.

Metric families:
- RED metrics for every HTTP endpoint
- Resolution metrics: which tier answered, quick-answer types, local classification hits
- Cost metrics: LLM calls per provider, daily budget usage, rate-limit rejections
- Dependency metrics: search-index latency, directory cache hits/misses/stale serves
- Resource metrics: process CPU and memory (psutil)

Naming follows Prometheus conventions: counters end in _total,
durations in _seconds.
"""
from typing import Optional
import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from smart_assistant.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
    registry=registry,
)

# ============================================================================
# RESOLUTION METRICS
# ============================================================================

assistant_resolutions_total = Counter(
    "assistant_resolutions_total",
    "Assistant queries resolved, by the tier that produced the search keywords",
    ["tier"],  # quick_answer, local, cloudflare, azure_openai
    registry=registry,
)

quick_answer_matches_total = Counter(
    "quick_answer_matches_total",
    "Quick answers matched, by response type",
    ["answer_type"],
    registry=registry,
)

assistant_zero_results_total = Counter(
    "assistant_zero_results_total",
    "Assistant responses where the search index returned no programs",
    ["tier"],
    registry=registry,
)

# ============================================================================
# COST METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "LLM keyword-extraction calls, by provider and outcome status",
    ["provider", "status"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM keyword-extraction latency in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
    registry=registry,
)

llm_daily_usage = Gauge(
    "llm_daily_usage",
    "Metered calls recorded today for a budget-capped service",
    ["service"],
    registry=registry,
)

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Requests rejected by the per-client rate limiter",
    registry=registry,
)

# ============================================================================
# DEPENDENCY METRICS
# ============================================================================

search_index_duration_seconds = Histogram(
    "search_index_duration_seconds",
    "Search index query latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=registry,
)

search_index_errors_total = Counter(
    "search_index_errors_total",
    "Search index queries that failed and degraded to an empty result",
    ["reason"],
    registry=registry,
)

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of cache hits",
    ["cache_type"],
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of cache misses",
    ["cache_type"],
    registry=registry,
)

cache_stale_served_total = Counter(
    "cache_stale_served_total",
    "Stale cache entries served because the upstream failed or offline mode is on",
    ["cache_type"],
    registry=registry,
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0 = closed, 1 = half open, 2 = open)",
    ["name"],
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

process_cpu_usage_percent = Gauge(
    "process_cpu_usage_percent",
    "Process CPU usage percentage",
    registry=registry,
)

process_memory_rss_bytes = Gauge(
    "process_memory_rss_bytes",
    "Process resident memory in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics.

    Collapses the dynamic directory resource segment to keep label
    cardinality bounded.

    Examples:
        /api/directory/programs -> /api/directory/{resource}
        /api/smart-assistant -> /api/smart-assistant
    """
    if "?" in path:
        path = path.split("?")[0]

    if path.startswith("/api/directory/"):
        return "/api/directory/{resource}"

    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics (RED metrics).

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request path, normalized here
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_resolution(tier: str, programs_found: int) -> None:
    assistant_resolutions_total.labels(tier=tier).inc()
    if programs_found == 0:
        assistant_zero_results_total.labels(tier=tier).inc()


def record_quick_answer(answer_type: str) -> None:
    quick_answer_matches_total.labels(answer_type=answer_type).inc()


def record_llm_request(provider: str, status: str, duration_seconds: Optional[float] = None) -> None:
    """
    Record one LLM tier attempt.

    Args:
        provider: "cloudflare" or "azure_openai"
        status: LLMStatus value of the outcome
        duration_seconds: Wall time of the HTTP call, when one was made
    """
    llm_requests_total.labels(provider=provider, status=status).inc()
    if duration_seconds is not None:
        llm_request_duration_seconds.labels(provider=provider).observe(duration_seconds)


def record_budget_usage(service: str, count: int) -> None:
    llm_daily_usage.labels(service=service).set(count)


def record_rate_limit_rejection() -> None:
    rate_limit_rejections_total.inc()


def record_search_request(duration_seconds: float, error_reason: Optional[str] = None) -> None:
    search_index_duration_seconds.observe(duration_seconds)
    if error_reason:
        search_index_errors_total.labels(reason=error_reason).inc()


def record_cache_hit(cache_type: str) -> None:
    """
    Record a cache hit.

    Args:
        cache_type: Directory resource name (e.g., "programs", "metadata")
    """
    cache_hits_total.labels(cache_type=cache_type).inc()


def record_cache_miss(cache_type: str) -> None:
    cache_misses_total.labels(cache_type=cache_type).inc()


def record_cache_stale(cache_type: str) -> None:
    cache_stale_served_total.labels(cache_type=cache_type).inc()


def update_circuit_breaker_state(name: str, state_value: str) -> None:
    levels = {"closed": 0, "half_open": 1, "open": 2}
    circuit_breaker_state.labels(name=name).set(levels.get(state_value, 0))


def update_resource_metrics() -> None:
    """
    Update process resource metrics (CPU, memory).

    Called on every scrape of /metrics.
    """
    try:
        process = psutil.Process()
        process_cpu_usage_percent.set(process.cpu_percent(interval=None))
        process_memory_rss_bytes.set(process.memory_info().rss)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Return all metrics in Prometheus text format."""
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
