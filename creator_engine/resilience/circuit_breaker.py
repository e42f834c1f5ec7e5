"""Circuit breaker for the text-generation service

State Machine:
    CLOSED (normal) → OPEN (failing fast) → HALF_OPEN (testing) → CLOSED/OPEN
"""

import logging
from contextlib import contextmanager, suppress
from typing import Any, Iterator

import pybreaker

from creator_engine.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Listener to log circuit breaker state changes and emit metrics"""

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        """Called when circuit breaker changes state"""
        old_name = old_state.name if old_state else "none"
        logger.warning(f"[CIRCUIT_BREAKER] {cb.name}: {old_name} → {new_state.name}")

        from creator_engine.resilience.metrics import record_circuit_breaker_state
        record_circuit_breaker_state(cb.name, new_state.name.lower())

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        """Called when circuit breaker records a failure"""
        logger.error(f"[CIRCUIT_BREAKER] {cb.name} recorded failure: {type(exc).__name__}: {exc}")

        from creator_engine.resilience.metrics import record_api_failure
        record_api_failure(cb.name, type(exc).__name__)

    def success(self, cb: pybreaker.CircuitBreaker) -> None:
        """Called when circuit breaker records a success"""
        logger.debug(f"[CIRCUIT_BREAKER] {cb.name} recorded success")


# 5 failures triggers OPEN, 60s timeout before HALF_OPEN
OPENAI_BREAKER = pybreaker.CircuitBreaker(
    fail_max=5,
    reset_timeout=60,
    name="openai_api",
    listeners=[CircuitBreakerListener()]
)


def _noop() -> None:
    return None


def _record_failure(breaker: pybreaker.CircuitBreaker, exc: Exception) -> None:
    """Count `exc` against the breaker; the caller re-raises the original error"""
    def fail() -> None:
        raise exc

    with suppress(Exception):
        breaker.call(fail)


@contextmanager
def guarded_by(breaker: pybreaker.CircuitBreaker, operation: str) -> Iterator[None]:
    """
    Run a block (including awaits) under circuit breaker accounting.

    The breaker's lock is never held across the block, so concurrent
    coroutines are not serialized. When the circuit is OPEN the block is not
    entered and UpstreamUnavailableError is raised instead.

    Example:
        with guarded_by(OPENAI_BREAKER, "chat_completion"):
            response = await client.chat.completions.create(...)
    """
    if breaker.current_state == pybreaker.STATE_OPEN:
        try:
            breaker.call(_noop)
        except pybreaker.CircuitBreakerError as e:
            logger.warning(f"[CIRCUIT_BREAKER] {breaker.name} is OPEN - failing fast")
            raise UpstreamUnavailableError(
                f"{breaker.name} circuit is open",
                operation=operation,
                cause=e
            ) from e

    try:
        yield
    except Exception as exc:
        _record_failure(breaker, exc)
        raise
    else:
        breaker.call(_noop)
