"""Pydantic domain models"""
from shame_game.models.user import User, Session
from shame_game.models.wakeup import (
    MathOperation,
    MathProblem,
    WakeUpLog,
    DailyScore,
    ShameEvent,
)
from shame_game.models.friends import (
    FriendRequest,
    FriendRequestStatus,
    Friendship,
    FriendshipStatus,
)
from shame_game.models.feed import (
    FeedItem,
    FeedItemType,
    FeedReaction,
    FeedComment,
    ReactionType,
)
from shame_game.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "Session",
    "MathOperation",
    "MathProblem",
    "WakeUpLog",
    "DailyScore",
    "ShameEvent",
    "FriendRequest",
    "FriendRequestStatus",
    "Friendship",
    "FriendshipStatus",
    "FeedItem",
    "FeedItemType",
    "FeedReaction",
    "FeedComment",
    "ReactionType",
    "Notification",
    "NotificationType",
]
