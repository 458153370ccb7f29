"""
Notification Service

Per-user notification list: notifications/{userId}.items, newest first,
capped at MAX_NOTIFICATIONS.
"""
import logging
import uuid
from datetime import timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.core.config import NOTIFICATIONS, MAX_NOTIFICATIONS
from challengehub.models.notification.notification import NotificationCreate
from challengehub.utils.clock import Clock

logger = logging.getLogger(__name__)


class NotificationService:
    """Appends notifications to a user's capped list."""

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or Clock()
        self.notifications = db[NOTIFICATIONS]

    async def add_notification(self, user_id: str, data: NotificationCreate) -> Dict[str, Any]:
        """
        Add a notification to the top of the user's list.

        Single atomic push (prepend + trim), so concurrent writers cannot
        lose each other's entries. Errors propagate; callers treat a
        notification as best-effort and catch per recipient.
        """
        notification = {
            "id": str(uuid.uuid4()),
            "created_at": self.clock.now().astimezone(timezone.utc).isoformat(),
            "read": False,
            **data.model_dump(mode="json", exclude_none=True),
        }

        await self.notifications.update_one(
            {"_id": user_id},
            {"$push": {"items": {
                "$each": [notification],
                "$position": 0,
                "$slice": MAX_NOTIFICATIONS,
            }}},
            upsert=True,
        )

        logger.debug("[NOTIFY] %s -> %s", data.title, user_id)
        return notification

    async def get_notifications(self, user_id: str) -> List[Dict[str, Any]]:
        doc = await self.notifications.find_one({"_id": user_id})
        if not doc:
            return []
        return doc.get("items", [])
