"""Social feed models"""
from enum import Enum
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class FeedItemType(str, Enum):
    """Kinds of feed events"""
    WAKE_UP = "wake_up"
    SHAME = "shame"
    ACHIEVEMENT = "achievement"


class ReactionType(str, Enum):
    """Reactions a friend can leave on a feed item"""
    APPLAUSE = "applause"
    MUSCLE = "muscle"
    FIRE = "fire"


class FeedReaction(BaseModel):
    """One user's reaction; a user holds at most one per item"""
    id: str
    user_id: str
    user_name: str
    type: ReactionType


class FeedComment(BaseModel):
    """Append-only comment"""
    id: str
    user_id: str
    user_name: str
    message: str
    timestamp: datetime


class FeedItem(BaseModel):
    """Activity feed entry, authored under user_id"""
    id: str
    user_id: str
    user_name: str
    type: FeedItemType
    message: str
    timestamp: datetime
    reactions: List[FeedReaction] = Field(default_factory=list)
    comments: List[FeedComment] = Field(default_factory=list)
    related_user_id: Optional[str] = None  # the shamer, for shame items
    shame_count: int = 0
