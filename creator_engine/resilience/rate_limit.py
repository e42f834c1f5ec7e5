"""Fail-fast rate limit for text-generation calls

Uses a moving-window limiter from the `limits` library. A call over the
limit raises RateLimitExceededError immediately; nothing is queued or retried.
"""

import logging

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from creator_engine.config import LLM_RATE_LIMIT
from creator_engine.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class LLMRateLimiter:
    """Process-wide limiter keyed by an identifier (user id or 'global')"""

    def __init__(self, rate: str = LLM_RATE_LIMIT):
        self.rate = rate
        self._limit = parse(rate)
        self._limiter = MovingWindowRateLimiter(MemoryStorage())

    def check(self, identifier: str = "global") -> None:
        """
        Consume one slot or fail.

        Raises:
            RateLimitExceededError: When the window is already full
        """
        if not self._limiter.hit(self._limit, "llm", identifier):
            from creator_engine.resilience.metrics import record_rate_limited
            record_rate_limited(identifier)
            raise RateLimitExceededError(
                operation="llm_call",
                context={"identifier": identifier, "rate": self.rate}
            )

    def reset(self) -> None:
        self._limiter.storage.reset()


llm_rate_limiter = LLMRateLimiter()
