"""Prometheus metrics for resilience patterns

Exposes metrics for the circuit breaker, text-generation calls and rate limiting.
"""

import logging
from prometheus_client import Counter, Histogram, Enum

logger = logging.getLogger(__name__)

# Circuit breaker state
# Values: closed, open, half_open
circuit_breaker_state = Enum(
    'creator_circuit_breaker_state',
    'Current state of circuit breaker',
    ['api'],
    states=['closed', 'open', 'half_open']
)

# Labels: api, status (success/failure)
api_calls_total = Counter(
    'creator_api_calls_total',
    'Total number of upstream API calls',
    ['api', 'status']
)

api_call_duration = Histogram(
    'creator_api_call_duration_seconds',
    'Duration of upstream API calls in seconds',
    ['api'],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, float('inf'))
)

# Labels: api, error_type (APITimeoutError/RateLimitError/etc)
api_failures_total = Counter(
    'creator_api_failures_total',
    'Total number of upstream API failures',
    ['api', 'error_type']
)

rate_limited_total = Counter(
    'creator_llm_rate_limited_total',
    'Text-generation calls rejected by the local rate limit',
)


def record_circuit_breaker_state(api: str, state: str) -> None:
    """
    Record circuit breaker state change.

    Args:
        api: Breaker name (openai_api)
        state: New state (closed, open, half_open)
    """
    circuit_breaker_state.labels(api=api).state(state)
    logger.debug(f"[METRICS] Circuit breaker {api} state: {state}")


def record_api_call(api: str, success: bool, duration: float) -> None:
    status = 'success' if success else 'failure'
    api_calls_total.labels(api=api, status=status).inc()
    api_call_duration.labels(api=api).observe(duration)
    logger.debug(f"[METRICS] API call {api}: {status}, duration: {duration:.2f}s")


def record_api_failure(api: str, error_type: str) -> None:
    api_failures_total.labels(api=api, error_type=error_type).inc()


def record_rate_limited(identifier: str) -> None:
    rate_limited_total.inc()
    logger.warning(f"[RATE_LIMIT] text-generation call rejected for {identifier}")
