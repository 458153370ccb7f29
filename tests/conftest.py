"""
Shared fixtures: an in-memory Mongo database and a pinned clock.
"""
import uuid
from datetime import date, datetime
from typing import Iterable

import pytest
from mongomock_motor import AsyncMongoMockClient

from challengehub.models.notification.notification import NotificationCreate
from challengehub.services.notification.notification_service import NotificationService
from challengehub.utils.clock import FixedClock

# Monday; not the first of the month
TODAY = date(2025, 3, 10)


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client[f"challengehub_test_{uuid.uuid4().hex[:8]}"]


@pytest.fixture
def clock():
    return FixedClock.at_date(TODAY)


def utc(*args) -> datetime:
    """Naive UTC datetime, as stored by the database"""
    return datetime(*args)


async def notification_titles(db, user_id: str):
    """Titles of a user's notifications, newest first"""
    items = await NotificationService(db).get_notifications(user_id)
    return [item["title"] for item in items]


class FlakyNotificationService(NotificationService):
    """Notification sink that fails for some users"""

    def __init__(self, db, failing_user_ids: Iterable[str]):
        super().__init__(db)
        self.failing_user_ids = set(failing_user_ids)

    async def add_notification(self, user_id: str, data: NotificationCreate):
        if user_id in self.failing_user_ids:
            raise RuntimeError(f"notification sink unavailable for {user_id}")
        return await super().add_notification(user_id, data)
