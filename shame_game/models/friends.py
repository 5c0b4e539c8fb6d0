"""Friend graph models"""
from enum import Enum
from datetime import datetime
from pydantic import BaseModel


class FriendRequestStatus(str, Enum):
    """Request lifecycle; only PENDING requests are live"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FriendshipStatus(str, Enum):
    """Relationship between two users as seen from the first one"""
    NONE = "none"
    FRIENDS = "friends"
    PENDING_INCOMING = "pending_incoming"
    PENDING_OUTGOING = "pending_outgoing"


class FriendRequest(BaseModel):
    """Directed friend request"""
    id: str
    from_user_id: str
    to_user_id: str
    from_user_display_name: str
    to_user_display_name: str
    status: FriendRequestStatus = FriendRequestStatus.PENDING
    timestamp: datetime


class Friendship(BaseModel):
    """Undirected friendship edge"""
    id: str
    user_id_1: str
    user_id_2: str
    created_at: datetime

    def other(self, user_id: str) -> str:
        """The friend on the opposite end from user_id"""
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1
