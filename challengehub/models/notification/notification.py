from pydantic import BaseModel
from typing import Optional, Dict, Any
from enum import Enum


class NotificationType(str, Enum):
    """Notification types shown in the dashboard"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INVITE = "invite"
    ACHIEVEMENT = "achievement"
    UPDATE = "update"


class NotificationCreate(BaseModel):
    """Payload for a new notification (id, created_at and read are set on insert)"""
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    action_label: Optional[str] = None
