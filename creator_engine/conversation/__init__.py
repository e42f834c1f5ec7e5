"""Onboarding interview and assistant conversations"""

from creator_engine.conversation.onboarding import (
    parse_onboarding_reply,
    apply_onboarding_reply,
    find_reasked_steps,
)
from creator_engine.conversation.cache import ConversationCache, LRUConversationCache
from creator_engine.conversation.manager import ConversationManager, ChatTurn

__all__ = [
    "parse_onboarding_reply",
    "apply_onboarding_reply",
    "find_reasked_steps",
    "ConversationCache",
    "LRUConversationCache",
    "ConversationManager",
    "ChatTurn",
]
