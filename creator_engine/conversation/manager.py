"""
Conversation Manager

Keeps per-conversation message history, runs the onboarding state machine
on onboarding conversations, builds the system prompt for the turn and
streams the model's reply back to the caller.

Conversations for anonymous users (ids starting with the onboarding prefix)
live in the cache only. Durable writes for everyone else are best-effort:
a failed write is logged and the cached copy still reflects the update.
"""
import asyncio
import logging
import secrets
import string
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from creator_engine.agent.llm_client import ChatMessage
from creator_engine.config import ANONYMOUS_USER_PREFIX, CONVERSATION_HISTORY_LIMIT
from creator_engine.conversation.cache import ConversationCache, LRUConversationCache
from creator_engine.conversation.onboarding import apply_onboarding_reply, find_reasked_steps
from creator_engine.conversation.prompts import (
    ONBOARDING_GREETING,
    build_assistant_prompt,
    build_onboarding_prompt,
)
from creator_engine.db import queries
from creator_engine.exceptions import ConversationNotFoundError
from creator_engine.models.conversation import Conversation, Message
from creator_engine.models.onboarding import OnboardingContext
from creator_engine.observability.metrics import (
    conversation_turns_total,
    onboarding_reask_total,
    onboarding_transitions_total,
)
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)

# Yielded to the caller when a streamed reply fails part-way
STREAM_ERROR_MARKER = "\n\n[Sorry, something went wrong while generating this response. Please try again.]"

KnowledgeProvider = Callable[[str, dict[str, Any]], Awaitable[Optional[str]]]
UserContextProvider = Callable[[str], Awaitable[Optional[str]]]
ProfileSink = Callable[[str, dict[str, Any]], Awaitable[Any]]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_conversation_id() -> str:
    """conv_<epoch ms>_<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"conv_{int(time.time() * 1000)}_{suffix}"


def is_anonymous_user(user_id: str) -> bool:
    return user_id.startswith(ANONYMOUS_USER_PREFIX)


class ChatTurn:
    """
    One streamed assistant reply

    Iterate it to receive text chunks. `full_text` holds everything
    received so far, and `conversation_id` identifies the conversation
    the turn belongs to, including one created for this turn.
    """

    def __init__(
        self,
        conversation_id: str,
        stream: Optional[Callable[["ChatTurn"], AsyncIterator[str]]] = None
    ):
        """
        Args:
            conversation_id: Conversation the reply belongs to
            stream: Builds the chunk iterator; receives this turn so it can
                keep `full_text` current
        """
        self.conversation_id = conversation_id
        self.full_text = ""
        self._chunks: Optional[AsyncIterator[str]] = stream(self) if stream is not None else None

    def __aiter__(self) -> AsyncIterator[str]:
        if self._chunks is None:
            raise RuntimeError("ChatTurn has no reply stream attached")
        return self._chunks

    async def collect(self) -> str:
        """Consume the whole stream and return the reply text"""
        async for _ in self:
            pass
        return self.full_text


class ConversationManager:
    """Conversation orchestration over a text-generation client"""

    def __init__(
        self,
        llm,
        cache: Optional[ConversationCache] = None,
        knowledge_provider: Optional[KnowledgeProvider] = None,
        user_context_provider: Optional[UserContextProvider] = None,
        profile_sink: Optional[ProfileSink] = None,
        history_limit: int = CONVERSATION_HISTORY_LIMIT,
    ):
        self.llm = llm
        self.cache = cache if cache is not None else LRUConversationCache()
        self.knowledge_provider = knowledge_provider
        self.user_context_provider = user_context_provider
        self.profile_sink = profile_sink
        self.history_limit = history_limit

    # ==========================================
    # Storage
    # ==========================================

    async def _persist(self, conversation: Conversation) -> None:
        """Write to the durable store for authenticated users; failures are logged"""
        if is_anonymous_user(conversation.user_id):
            return
        try:
            await queries.upsert_conversation(
                conversation_id=conversation.id,
                user_id=conversation.user_id,
                messages=[m.model_dump(mode="json") for m in conversation.messages],
                context=conversation.context,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            )
        except Exception as e:
            logger.error(f"Error saving conversation {conversation.id} to database: {e}", exc_info=True)

    async def create_conversation(
        self,
        user_id: str,
        initial_context: Optional[dict[str, Any]] = None
    ) -> Conversation:
        """Create, cache and (for authenticated users) persist a new conversation"""
        now = datetime_helpers.now_local()
        conversation = Conversation(
            id=new_conversation_id(),
            user_id=user_id,
            messages=[],
            context=dict(initial_context or {}),
            created_at=now,
            updated_at=now,
        )
        self.cache.set(conversation)
        await self._persist(conversation)

        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def create_onboarding_conversation(self, user_id: str) -> Conversation:
        """Onboarding conversation at the welcome step, seeded with the greeting"""
        conversation = await self.create_conversation(
            user_id,
            OnboardingContext().model_dump(mode="json")
        )
        await self.add_message(conversation.id, "assistant", ONBOARDING_GREETING)
        return conversation

    async def create_support_conversation(self, user_id: str, topic: Optional[str] = None) -> Conversation:
        context: dict[str, Any] = {"type": "support"}
        if topic:
            context["topic"] = topic
        return await self.create_conversation(user_id, context)

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """
        Cached conversation, falling back to the durable store

        Raises:
            ConversationNotFoundError: Unknown id
        """
        if not conversation_id:
            raise ConversationNotFoundError(str(conversation_id))

        cached = self.cache.get(conversation_id)
        if cached is not None:
            return cached

        row = await queries.get_conversation(conversation_id)
        if row is None:
            raise ConversationNotFoundError(conversation_id)

        conversation = Conversation.model_validate(row)
        self.cache.set(conversation)
        return conversation

    async def add_message(self, conversation_id: str, role: str, content: str) -> Message:
        conversation = await self.get_conversation(conversation_id)

        now = datetime_helpers.now_local()
        message = Message(role=role, content=content, timestamp=now)
        conversation.messages.append(message)
        conversation.updated_at = now

        self.cache.set(conversation)
        await self._persist(conversation)
        return message

    async def update_context(self, conversation_id: str, updates: dict[str, Any]) -> Conversation:
        """Shallow-merge `updates` into the conversation context"""
        conversation = await self.get_conversation(conversation_id)
        conversation.context.update(updates)
        conversation.updated_at = datetime_helpers.now_local()

        self.cache.set(conversation)
        await self._persist(conversation)
        return conversation

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Remove a conversation owned by `user_id`"""
        conversation = await self.get_conversation(conversation_id)
        if conversation.user_id != user_id:
            raise ConversationNotFoundError(conversation_id, user_id=user_id)

        self.cache.delete(conversation_id)
        if is_anonymous_user(user_id):
            return
        try:
            await queries.delete_conversation(conversation_id)
        except Exception as e:
            logger.error(f"Error deleting conversation {conversation_id}: {e}", exc_info=True)

    async def get_user_conversations(self, user_id: str, limit: int = 10) -> list[Conversation]:
        """Most recent conversations from the durable store; [] if it is unavailable"""
        if is_anonymous_user(user_id):
            return []
        try:
            rows = await queries.get_user_conversations(user_id, limit=limit)
        except Exception as e:
            logger.error(f"Error getting conversations for user {user_id}: {e}", exc_info=True)
            return []
        return [Conversation.model_validate(row) for row in rows]

    # ==========================================
    # Onboarding
    # ==========================================

    async def update_onboarding_context(
        self,
        conversation_id: str,
        user_message: str
    ) -> Optional[OnboardingContext]:
        """
        Run the onboarding transition for one user reply

        Returns:
            The new onboarding context, or None for non-onboarding conversations
        """
        conversation = await self.get_conversation(conversation_id)
        if not conversation.is_onboarding:
            return None

        current = OnboardingContext.model_validate(conversation.context)
        updated = apply_onboarding_reply(current, user_message)

        if updated.step != current.step:
            onboarding_transitions_total.labels(
                from_step=current.step.value,
                to_step=updated.step.value
            ).inc()
            logger.info(
                f"Onboarding {conversation_id} moved {current.step.value} -> {updated.step.value}"
            )
        else:
            logger.debug(f"Onboarding {conversation_id} stayed at {current.step.value}")

        await self.update_context(conversation_id, updated.model_dump(mode="json"))

        if updated.is_complete and not current.is_complete:
            await self._hand_off_profile(conversation.user_id, updated.responses)

        return updated

    async def _hand_off_profile(self, user_id: str, responses: dict[str, Any]) -> None:
        """Pass completed onboarding responses to profile persistence"""
        if self.profile_sink is None:
            return
        if is_anonymous_user(user_id):
            logger.info(f"Onboarding complete for anonymous user {user_id}; responses kept in cache")
            return
        try:
            await self.profile_sink(user_id, dict(responses))
        except Exception as e:
            logger.error(f"Failed to hand off onboarding profile for {user_id}: {e}", exc_info=True)

    def _check_reasked(self, conversation: Conversation, reply: str) -> None:
        responses = conversation.context.get("responses") or {}
        for step in find_reasked_steps(reply, responses):
            onboarding_reask_total.labels(step=step.value).inc()
            logger.warning(
                f"Assistant re-asked answered onboarding step '{step.value}' "
                f"in conversation {conversation.id}"
            )

    # ==========================================
    # Prompt building
    # ==========================================

    async def build_system_prompt(self, conversation: Conversation, include_knowledge: bool = False) -> str:
        if conversation.is_onboarding:
            return build_onboarding_prompt(
                conversation.context.get("step", "welcome"),
                conversation.context.get("responses") or {}
            )

        user_context = None
        if self.user_context_provider is not None:
            try:
                user_context = await self.user_context_provider(conversation.user_id)
            except Exception as e:
                logger.warning(f"User context unavailable for {conversation.user_id}: {e}")

        knowledge = None
        if include_knowledge and self.knowledge_provider is not None:
            last_user_message = next(
                (m.content for m in reversed(conversation.messages) if m.role == "user"),
                ""
            )
            if last_user_message:
                try:
                    knowledge = await self.knowledge_provider(
                        last_user_message,
                        {
                            "platform": conversation.context.get("currentPlatform"),
                            "niche": conversation.context.get("currentNiche"),
                        }
                    )
                except Exception as e:
                    logger.warning(f"Knowledge retrieval failed for {conversation.id}: {e}")

        return build_assistant_prompt(user_context, knowledge)

    def build_message_history(self, conversation: Conversation, system_prompt: str) -> list[ChatMessage]:
        """System prompt followed by the most recent messages"""
        history = conversation.messages[-self.history_limit:] if self.history_limit else conversation.messages
        messages: list[ChatMessage] = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        return messages

    # ==========================================
    # Turns
    # ==========================================

    async def _prepare_turn(
        self,
        conversation_id: Optional[str],
        message: str,
        user_id: str,
        include_knowledge: bool,
        context: Optional[dict[str, Any]],
    ) -> tuple[Conversation, list[ChatMessage]]:
        if not conversation_id:
            conversation = await self.create_conversation(user_id, context)
        else:
            conversation = await self.get_conversation(conversation_id)
            if conversation.user_id != user_id:
                raise ConversationNotFoundError(conversation_id, user_id=user_id)

        await self.add_message(conversation.id, "user", message)

        # Transition first so the prompt reflects the post-reply state
        if conversation.is_onboarding:
            await self.update_onboarding_context(conversation.id, message)

        # The cache may hand out copies, so read back the updated conversation
        conversation = await self.get_conversation(conversation.id)
        system_prompt = await self.build_system_prompt(conversation, include_knowledge)
        return conversation, self.build_message_history(conversation, system_prompt)

    async def process_message(
        self,
        conversation_id: Optional[str],
        message: str,
        *,
        user_id: str,
        include_knowledge: bool = False,
        context: Optional[dict[str, Any]] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> ChatTurn:
        """
        Process a user message and stream the assistant's reply

        Args:
            conversation_id: Existing conversation, or None to start one
            message: User's message
            user_id: Caller; owns any conversation created here
            include_knowledge: Add knowledge-base context to assistant prompts
            context: Initial context for a new conversation
            on_chunk: Called with each text chunk as it arrives

        Returns:
            ChatTurn to iterate for the reply chunks

        Raises:
            ConversationNotFoundError: Unknown conversation id
        """
        conversation, prompt_messages = await self._prepare_turn(
            conversation_id, message, user_id, include_knowledge, context
        )
        return ChatTurn(
            conversation.id,
            lambda turn: self._stream_reply(conversation, prompt_messages, turn, on_chunk),
        )

    async def _stream_reply(
        self,
        conversation: Conversation,
        prompt_messages: list[ChatMessage],
        turn: ChatTurn,
        on_chunk: Optional[Callable[[str], None]],
    ) -> AsyncIterator[str]:
        mode = "onboarding" if conversation.is_onboarding else "assistant"
        parts: list[str] = []

        try:
            async for fragment in self.llm.chat_completion_stream(prompt_messages, user_id=conversation.user_id):
                if fragment.content:
                    parts.append(fragment.content)
                    turn.full_text = "".join(parts)
                    if on_chunk is not None:
                        on_chunk(fragment.content)
                    yield fragment.content
                if fragment.done:
                    break
        except (asyncio.CancelledError, GeneratorExit):
            conversation_turns_total.labels(mode=mode, status="cancelled").inc()
            logger.info(f"Reply stream for {conversation.id} cancelled after {len(turn.full_text)} chars")
            await self._save_partial(conversation.id, turn.full_text)
            raise
        except Exception as e:
            conversation_turns_total.labels(mode=mode, status="error").inc()
            logger.error(f"Reply stream failed for {conversation.id}: {e}", exc_info=True)
            await self._save_partial(conversation.id, turn.full_text)
            yield STREAM_ERROR_MARKER
            raise

        await self.add_message(conversation.id, "assistant", turn.full_text)
        conversation_turns_total.labels(mode=mode, status="success").inc()
        logger.info(f"Reply for {conversation.id} complete ({len(turn.full_text)} chars)")

        if conversation.is_onboarding:
            self._check_reasked(conversation, turn.full_text)

    async def _save_partial(self, conversation_id: str, text: str) -> None:
        if not text:
            return
        try:
            await self.add_message(conversation_id, "assistant", text)
        except Exception as e:
            logger.error(f"Could not save partial reply for {conversation_id}: {e}", exc_info=True)

    async def complete_message(
        self,
        conversation_id: Optional[str],
        message: str,
        *,
        user_id: str,
        include_knowledge: bool = False,
        context: Optional[dict[str, Any]] = None,
    ) -> tuple[str, str]:
        """
        Non-streamed variant of process_message

        Returns:
            (conversation_id, reply text)
        """
        conversation, prompt_messages = await self._prepare_turn(
            conversation_id, message, user_id, include_knowledge, context
        )
        mode = "onboarding" if conversation.is_onboarding else "assistant"

        try:
            reply = await self.llm.chat_completion(prompt_messages, user_id=conversation.user_id)
        except Exception as e:
            conversation_turns_total.labels(mode=mode, status="error").inc()
            logger.error(f"Completion failed for {conversation.id}: {e}", exc_info=True)
            raise

        await self.add_message(conversation.id, "assistant", reply)
        conversation_turns_total.labels(mode=mode, status="success").inc()

        if conversation.is_onboarding:
            self._check_reasked(conversation, reply)
        return conversation.id, reply
