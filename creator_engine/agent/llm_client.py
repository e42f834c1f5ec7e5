"""
Text-generation and embedding client

Wraps the OpenAI SDK behind the three calls the engine needs:
- chat_completion: one completed string
- chat_completion_stream: async stream of StreamFragment, the last one flagged done
- create_embedding: text -> vector (used by knowledge retrieval only)

Every call passes the fail-fast rate limit first, then the circuit breaker.
Provider errors surface as UpstreamUnavailableError.
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Optional, TypedDict

import httpx
import openai
from openai import AsyncOpenAI

from creator_engine.config import (
    OPENAI_API_KEY,
    AGENT_MODEL,
    EMBEDDING_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT_SECONDS,
)
from creator_engine.exceptions import UpstreamUnavailableError
from creator_engine.models.conversation import StreamFragment
from creator_engine.resilience import OPENAI_BREAKER, guarded_by, llm_rate_limiter, record_api_call

logger = logging.getLogger(__name__)


class ChatMessage(TypedDict):
    role: str
    content: str


class LLMClient:
    """Async client for chat completions and embeddings"""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = AGENT_MODEL,
        embedding_model: str = EMBEDDING_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
        client: Optional[AsyncOpenAI] = None,
        rate_limiter=llm_rate_limiter,
        breaker=OPENAI_BREAKER,
    ):
        self.model = model
        self.embedding_model = embedding_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.rate_limiter = rate_limiter
        self.breaker = breaker
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(LLM_TIMEOUT_SECONDS, connect=10.0)
        )

    def _params(self, temperature: Optional[float], max_tokens: Optional[int]) -> dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        user_id: Optional[str] = None,
        response_format: Optional[dict] = None,
    ) -> str:
        """
        Generate a single completion

        Args:
            messages: Ordered role-tagged messages
            temperature: Override configured temperature
            max_tokens: Override configured max tokens
            user_id: Rate-limit key (defaults to a global bucket)
            response_format: Passed through, e.g. {"type": "json_object"}

        Returns:
            Completion text ('' if the model returned nothing)

        Raises:
            RateLimitExceededError: Local limit reached
            UpstreamUnavailableError: Provider failure or open circuit
        """
        self.rate_limiter.check(user_id or "global")
        params = self._params(temperature, max_tokens)
        if response_format:
            params["response_format"] = response_format

        start = time.monotonic()
        try:
            with guarded_by(self.breaker, "chat_completion"):
                response = await self.client.chat.completions.create(messages=messages, **params)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            record_api_call("openai", False, time.monotonic() - start)
            raise UpstreamUnavailableError(
                f"Chat completion failed: {e}",
                user_id=user_id,
                operation="chat_completion",
                cause=e
            ) from e

        record_api_call("openai", True, time.monotonic() - start)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> AsyncIterator[StreamFragment]:
        """
        Stream a completion as incremental fragments

        Yields:
            StreamFragment(content=..., done=False) per delta, then
            StreamFragment(content='', done=True)
        """
        self.rate_limiter.check(user_id or "global")
        params = self._params(temperature, max_tokens)

        start = time.monotonic()
        try:
            with guarded_by(self.breaker, "chat_completion_stream"):
                stream = await self.client.chat.completions.create(messages=messages, stream=True, **params)
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield StreamFragment(content=content, done=False)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            record_api_call("openai", False, time.monotonic() - start)
            raise UpstreamUnavailableError(
                f"Chat completion stream failed: {e}",
                user_id=user_id,
                operation="chat_completion_stream",
                cause=e
            ) from e

        record_api_call("openai", True, time.monotonic() - start)
        yield StreamFragment(content="", done=True)

    async def create_embedding(self, text: str) -> list[float]:
        """Embed text for knowledge-base retrieval"""
        self.rate_limiter.check("embeddings")
        try:
            with guarded_by(self.breaker, "create_embedding"):
                response = await self.client.embeddings.create(model=self.embedding_model, input=text)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            raise UpstreamUnavailableError(
                f"Embedding failed: {e}",
                operation="create_embedding",
                cause=e
            ) from e
        return list(response.data[0].embedding)

    async def complete_json(
        self,
        messages: list[ChatMessage],
        fallback: dict[str, Any],
        user_id: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Completion parsed as a JSON object

        A response that is not a JSON object yields a copy of `fallback`.
        Upstream failures still raise.
        """
        text = await self.chat_completion(
            messages,
            temperature=temperature,
            user_id=user_id,
            response_format={"type": "json_object"},
        )
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"Model returned non-JSON content, using fallback: {text[:200]!r}")
            return dict(fallback)
        if not isinstance(parsed, dict):
            logger.warning(f"Model returned JSON {type(parsed).__name__}, expected object; using fallback")
            return dict(fallback)
        return parsed
