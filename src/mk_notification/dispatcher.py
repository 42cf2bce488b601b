"""In-app notification writer.

Delivery mechanics (push, email) belong to the notification service, which
reads the notifications table. Callers here are outbox handlers, so a
failed insert propagates and the effect is retried.
"""

import json
import logging
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.ids import generate_id

logger = logging.getLogger(__name__)

_INSERT_NOTIFICATION_SQL = text("""
    INSERT INTO notifications (id, user_id, type, title, message, data)
    VALUES (:id, :user_id, :type, :title, :message, :data)
""")


class NotifierProtocol(Protocol):
    async def notify(
        self,
        db: AsyncSession,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> str: ...


class NotificationDispatcher:
    async def notify(
        self,
        db: AsyncSession,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> str:
        notification_id = generate_id()
        await db.execute(
            _INSERT_NOTIFICATION_SQL,
            {
                "id": notification_id,
                "user_id": user_id,
                "type": type,
                "title": title,
                "message": message,
                "data": json.dumps(data or {}),
            },
        )
        logger.debug("Notification queued user=%s type=%s", user_id, type)
        return notification_id
