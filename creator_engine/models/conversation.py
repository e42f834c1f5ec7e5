"""Conversation models"""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str
    timestamp: datetime


class Conversation(BaseModel):
    """Chat session; `context` is free-form, onboarding sessions carry type/step/responses"""
    id: str
    user_id: str
    messages: list[Message] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @property
    def is_onboarding(self) -> bool:
        return self.context.get("type") == "onboarding"


class StreamFragment(BaseModel):
    """Incremental text from the text-generation collaborator"""
    content: str
    done: bool = False
