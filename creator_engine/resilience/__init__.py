"""Resilience patterns for text-generation calls

Circuit breaking, a fail-fast local rate limit, and the metrics both emit.
"""

from creator_engine.resilience.circuit_breaker import OPENAI_BREAKER, guarded_by
from creator_engine.resilience.rate_limit import LLMRateLimiter, llm_rate_limiter
from creator_engine.resilience.metrics import (
    record_circuit_breaker_state,
    record_api_call,
    record_api_failure,
    record_rate_limited,
)

__all__ = [
    "OPENAI_BREAKER",
    "guarded_by",
    "LLMRateLimiter",
    "llm_rate_limiter",
    "record_circuit_breaker_state",
    "record_api_call",
    "record_api_failure",
    "record_rate_limited",
]
