"""
Standardized exception hierarchy for creator-engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class CreatorEngineError(Exception):
    """
    Base exception for all creator-engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Automatic logging

    Example:
        raise CreatorEngineError(
            message="Failed to load conversation",
            user_id="user-42",
            operation="get_conversation",
            context={"conversation_id": "conv_1700000000000_ab12cd34e"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(CreatorEngineError):
    """
    Raised when caller input fails validation

    Examples:
    - Unknown leaderboard type/timeframe combination
    - Unknown onboarding step
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(CreatorEngineError):
    """
    Base class for database-related errors
    """
    pass


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your data. Please try again.",
            context={"query": query},
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested database record does not exist"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class ConversationNotFoundError(RecordNotFoundError):
    """Conversation id is in neither the cache nor the durable store"""

    def __init__(self, conversation_id: str, **kwargs):
        super().__init__(
            message=f"Conversation {conversation_id} not found",
            record_type="Conversation",
            record_id=conversation_id,
            **kwargs
        )


# ==========================================
# External API Errors
# ==========================================

class ExternalAPIError(CreatorEngineError):
    """
    Base class for external API failures
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
        **kwargs
    ):
        self.service = service
        self.status_code = status_code
        context = {"service": service, "status_code": status_code, **(kwargs.pop("context", None) or {})}
        super().__init__(
            message=message,
            user_message=user_message or f"We're having trouble connecting to {service or 'an external service'}. Please try again later.",
            context=context,
            **kwargs
        )


class UpstreamUnavailableError(ExternalAPIError):
    """Text-generation or embedding call failed (network, breaker open, malformed response)"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("service", "OpenAI")
        super().__init__(message=message, **kwargs)


class RateLimitExceededError(UpstreamUnavailableError):
    """Local fail-fast rate limit rejected a text-generation call"""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", **kwargs):
        super().__init__(
            message=message,
            status_code=429,
            user_message="Rate limit exceeded. Please try again later.",
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> CreatorEngineError:
    """
    Wrap external exceptions (psycopg, openai, httpx) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate CreatorEngineError subclass
    """
    import httpx
    import openai
    import psycopg

    if isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            cause=error
        )
    elif isinstance(error, (openai.APIError, httpx.HTTPError)):
        status_code = getattr(error, "status_code", None)
        return UpstreamUnavailableError(
            message=f"Upstream call failed: {str(error)}",
            status_code=status_code,
            user_id=user_id,
            operation=operation,
            cause=error
        )

    return CreatorEngineError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
