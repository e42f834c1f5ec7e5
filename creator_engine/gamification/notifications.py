"""Notification collaborator: fire-and-forget from the engine's point of view"""

import logging
from typing import Any, Optional

from creator_engine.db import queries

logger = logging.getLogger(__name__)


async def notify(
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None
) -> bool:
    """
    Deliver a notification without ever failing the award that caused it

    Returns:
        True if delivered, False if delivery failed (already logged)
    """
    try:
        await queries.insert_notification(user_id, type, title, message, data)
        return True
    except Exception as e:
        logger.error(f"Failed to notify user {user_id} ({type}): {e}", exc_info=True)
        return False
