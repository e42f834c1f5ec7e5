"""Text-generation collaborator"""

from creator_engine.agent.llm_client import LLMClient, ChatMessage

__all__ = ["LLMClient", "ChatMessage"]
