"""Prometheus metrics for the Mistral chat node.

Provides metrics instrumentation for:
- LLM request latency and counts
- Token usage, split by exact and estimated figures
- Estimated cost
- Streamed chunk counts
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from mistral_chat.logging_config import get_logger

logger = get_logger(__name__)

LLM_REQUEST_DURATION = Histogram(
    "mistral_request_duration_seconds",
    "Mistral request duration in seconds",
    ["model", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

LLM_REQUEST_TOTAL = Counter(
    "mistral_requests_total",
    "Total Mistral requests",
    ["model", "status"],
)

LLM_TOKENS_TOTAL = Counter(
    "mistral_tokens_total",
    "Total Mistral tokens used",
    ["model", "type", "source"],  # type: prompt/completion, source: exact/estimated
)

LLM_COST_CENTS_TOTAL = Counter(
    "mistral_cost_cents_total",
    "Estimated Mistral spend in cents",
    ["model", "currency"],
)

STREAM_CHUNKS_TOTAL = Counter(
    "mistral_stream_chunks_total",
    "Streamed chunks received",
    ["model"],
)

CACHE_LOOKUPS_TOTAL = Counter(
    "mistral_cache_lookups_total",
    "Response cache lookups",
    ["result"],  # hit/miss
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_llm_request(
    model: str,
    duration: float,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    cost_cents: float = 0.0,
    currency: str = "USD",
    estimated: bool = False,
    status: str = "success",
) -> None:
    """Track Mistral request metrics.

    Args:
        model: Model id.
        duration: Request duration in seconds.
        prompt_tokens: Number of prompt tokens.
        completion_tokens: Number of completion tokens.
        cost_cents: Estimated cost in cents.
        currency: Currency of ``cost_cents``.
        estimated: Whether token counts are estimates.
        status: ``success``, ``error`` or ``cancelled``.
    """
    LLM_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    LLM_REQUEST_TOTAL.labels(model=model, status=status).inc()

    if status != "success":
        return

    source = "estimated" if estimated else "exact"
    LLM_TOKENS_TOTAL.labels(model=model, type="prompt", source=source).inc(prompt_tokens)
    LLM_TOKENS_TOTAL.labels(model=model, type="completion", source=source).inc(completion_tokens)
    if cost_cents > 0:
        LLM_COST_CENTS_TOTAL.labels(model=model, currency=currency).inc(cost_cents)


def track_stream_chunk(model: str) -> None:
    """Count one streamed chunk."""
    STREAM_CHUNKS_TOTAL.labels(model=model).inc()


def track_cache_lookup(hit: bool) -> None:
    """Count a response cache lookup."""
    CACHE_LOOKUPS_TOTAL.labels(result="hit" if hit else "miss").inc()
