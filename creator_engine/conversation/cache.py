"""
Conversation cache

The manager owns one cache instance; nothing here is module-global.
Not shared across processes, the durable store stays the source of truth
for authenticated users.
"""
import logging
from collections import OrderedDict
from typing import Optional, Protocol

from creator_engine.config import CONVERSATION_CACHE_SIZE
from creator_engine.models.conversation import Conversation

logger = logging.getLogger(__name__)


class ConversationCache(Protocol):
    def get(self, conversation_id: str) -> Optional[Conversation]: ...

    def set(self, conversation: Conversation) -> None: ...

    def delete(self, conversation_id: str) -> None: ...


class LRUConversationCache:
    """Bounded cache that evicts the least recently used conversation"""

    def __init__(self, max_size: int = CONVERSATION_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: OrderedDict[str, Conversation] = OrderedDict()

    def get(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._entries.get(conversation_id)
        if conversation is not None:
            self._entries.move_to_end(conversation_id)
        return conversation

    def set(self, conversation: Conversation) -> None:
        self._entries[conversation.id] = conversation
        self._entries.move_to_end(conversation.id)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted conversation {evicted} from cache")

    def delete(self, conversation_id: str) -> None:
        self._entries.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._entries
