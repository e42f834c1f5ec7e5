"""Conversation persistence queries"""
import json
import logging
from datetime import datetime
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


async def get_conversation(conversation_id: str) -> Optional[dict]:
    """
    Load one conversation

    Returns:
        {'id', 'user_id', 'messages': list[dict], 'context': dict, 'created_at', 'updated_at'} or None
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, user_id, messages, context, created_at, updated_at
                FROM ai_conversations
                WHERE id = %s
                """,
                (conversation_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def upsert_conversation(
    conversation_id: str,
    user_id: str,
    messages: list[dict],
    context: dict,
    created_at: datetime,
    updated_at: datetime
) -> None:
    """Write the whole conversation record (messages and context are stored as JSON)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO ai_conversations (id, user_id, messages, context, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET messages = EXCLUDED.messages,
                    context = EXCLUDED.context,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    conversation_id, user_id,
                    json.dumps(messages, default=str), json.dumps(context, default=str),
                    created_at, updated_at
                )
            )
            await conn.commit()


async def delete_conversation(conversation_id: str) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("DELETE FROM ai_conversations WHERE id = %s", (conversation_id,))
            await conn.commit()


async def get_user_conversations(user_id: str, limit: int = 50) -> list[dict]:
    """Most recently updated first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, user_id, messages, context, created_at, updated_at
                FROM ai_conversations
                WHERE user_id = %s
                ORDER BY updated_at DESC
                LIMIT %s
                """,
                (user_id, limit)
            )
            return [dict(row) for row in await cur.fetchall()]
