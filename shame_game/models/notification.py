"""Notification inbox models"""
from enum import Enum
from typing import Any, Dict
from datetime import datetime
from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Events that notify a user"""
    WAKE_UP = "wake_up"
    SHAME = "shame"
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    SHAME_OPPORTUNITY = "shame_opportunity"


class Notification(BaseModel):
    """Notification stored in the recipient's inbox"""
    id: str
    recipient_id: str
    type: NotificationType
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    read: bool = False
