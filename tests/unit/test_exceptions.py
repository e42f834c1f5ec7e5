"""Unit tests for the exception hierarchy (creator_engine/exceptions.py)"""
import httpx
import psycopg

from creator_engine.exceptions import (
    ConversationNotFoundError,
    CreatorEngineError,
    QueryError,
    RateLimitExceededError,
    UpstreamUnavailableError,
    wrap_external_exception,
)


def test_conversation_not_found_carries_id():
    error = ConversationNotFoundError("conv_1700000000000_ab12cd34e", user_id="creator-1")

    assert "conv_1700000000000_ab12cd34e" in error.message
    assert error.user_id == "creator-1"
    assert error.request_id


def test_rate_limit_error_keeps_caller_context():
    error = RateLimitExceededError(operation="llm_call", context={"identifier": "creator-1"})

    assert error.status_code == 429
    assert error.context["identifier"] == "creator-1"
    assert error.context["service"] == "OpenAI"


def test_wrap_database_error():
    wrapped = wrap_external_exception(psycopg.OperationalError("server closed the connection"), "db_query")

    assert isinstance(wrapped, QueryError)
    assert wrapped.operation == "db_query"


def test_wrap_http_error():
    wrapped = wrap_external_exception(httpx.ConnectError("refused"), "chat_completion", user_id="creator-1")

    assert isinstance(wrapped, UpstreamUnavailableError)
    assert wrapped.user_id == "creator-1"


def test_wrap_unknown_error_keeps_context():
    wrapped = wrap_external_exception(KeyError("x"), "load_profile", context={"step": "niche"})

    assert type(wrapped) is CreatorEngineError
    assert wrapped.context == {"step": "niche"}
