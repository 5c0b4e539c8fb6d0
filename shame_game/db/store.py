"""
Persistence interface and in-memory store

Store is the contract every backend implements. MemoryStore keeps all data
in process dictionaries; it backs the test-suite and STORAGE_BACKEND=memory.
Returned models are copies, so callers never mutate stored state by accident.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shame_game.exceptions import ConflictError, RecordNotFoundError
from shame_game.models import (
    DailyScore,
    FeedComment,
    FeedItem,
    FeedReaction,
    FriendRequest,
    FriendRequestStatus,
    Friendship,
    MathProblem,
    Notification,
    Session,
    ShameEvent,
    User,
    WakeUpLog,
)

logger = logging.getLogger(__name__)


class Store(ABC):
    """Storage contract used by the services"""

    # Lifecycle

    async def open(self) -> None:
        """Acquire resources (connection pools, schema)"""

    async def close(self) -> None:
        """Release resources"""

    async def ping(self) -> bool:
        """Return True when the backend is reachable"""
        return True

    # Users

    @abstractmethod
    async def create_user(self, user: User, password_hash: str) -> User:
        """Insert a user; raises ConflictError if the email is taken"""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_password_hash(self, user_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def update_user_profile(self, user_id: str, fields: Dict[str, Any]) -> User:
        """Set only the given PROFILE_FIELDS columns; raises RecordNotFoundError"""

    @abstractmethod
    async def record_wake_up_totals(
        self,
        user_id: str,
        points: int,
        current_streak: int,
        longest_streak: int,
        last_wake_up_date: date
    ) -> User:
        """Add points to total_score and set the streak columns in one write"""

    @abstractmethod
    async def deduct_total_score(self, user_id: str, points: int) -> User:
        """Subtract points from total_score, floored at zero"""

    @abstractmethod
    async def get_users(self, user_ids: Iterable[str]) -> List[User]:
        ...

    @abstractmethod
    async def search_users(self, query: str, limit: int) -> List[User]:
        """Case-insensitive substring match on display name or email"""

    # Sessions

    @abstractmethod
    async def create_session(self, session: Session) -> Session:
        ...

    @abstractmethod
    async def get_session(self, token: str) -> Optional[Session]:
        ...

    @abstractmethod
    async def delete_session(self, token: str) -> bool:
        ...

    # Pending wake-up challenges

    @abstractmethod
    async def set_pending_challenge(self, user_id: str, problem: MathProblem) -> None:
        ...

    @abstractmethod
    async def get_pending_challenge(self, user_id: str) -> Optional[MathProblem]:
        ...

    @abstractmethod
    async def clear_pending_challenge(self, user_id: str) -> None:
        ...

    # Wake-up logs

    @abstractmethod
    async def add_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        """Insert a log; raises ConflictError if one exists for (user_id, log_date)"""

    @abstractmethod
    async def get_wake_up_log(self, user_id: str, log_date: date) -> Optional[WakeUpLog]:
        ...

    @abstractmethod
    async def update_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        ...

    @abstractmethod
    async def list_wake_up_logs(self, user_id: str, limit: int) -> List[WakeUpLog]:
        """Most recent first"""

    # Daily scores

    @abstractmethod
    async def save_daily_score(self, score: DailyScore) -> DailyScore:
        """Insert or replace the score for (user_id, date)"""

    @abstractmethod
    async def get_daily_score(self, user_id: str, score_date: date) -> Optional[DailyScore]:
        ...

    @abstractmethod
    async def list_daily_scores(self, user_id: str, limit: int) -> List[DailyScore]:
        """Most recent first"""

    # Shame events

    @abstractmethod
    async def add_shame_event(self, event: ShameEvent) -> ShameEvent:
        ...

    @abstractmethod
    async def count_shame_events(self, target_user_id: str, event_date: date) -> int:
        ...

    # Friend requests

    @abstractmethod
    async def add_friend_request(self, request: FriendRequest) -> FriendRequest:
        ...

    @abstractmethod
    async def get_friend_request(self, request_id: str) -> Optional[FriendRequest]:
        ...

    @abstractmethod
    async def update_friend_request(self, request: FriendRequest) -> FriendRequest:
        ...

    @abstractmethod
    async def delete_friend_request(self, request_id: str) -> bool:
        ...

    @abstractmethod
    async def list_pending_requests(
        self,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None
    ) -> List[FriendRequest]:
        """Pending requests filtered by addressee and/or sender, newest first"""

    # Friendships

    @abstractmethod
    async def add_friendship(self, friendship: Friendship) -> Friendship:
        ...

    @abstractmethod
    async def get_friendship(self, user_a: str, user_b: str) -> Optional[Friendship]:
        """Edge between the two users, in either direction"""

    @abstractmethod
    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        ...

    @abstractmethod
    async def list_friend_ids(self, user_id: str) -> List[str]:
        ...

    # Feed

    @abstractmethod
    async def add_feed_item(self, item: FeedItem) -> FeedItem:
        ...

    @abstractmethod
    async def get_feed_item(self, item_id: str) -> Optional[FeedItem]:
        ...

    @abstractmethod
    async def list_feed_items(self, author_ids: Iterable[str], limit: int) -> List[FeedItem]:
        """Items authored by any of author_ids, newest first"""

    @abstractmethod
    async def upsert_reaction(self, item_id: str, reaction: FeedReaction) -> FeedItem:
        """Replace the reacting user's reaction in place, or append it"""

    @abstractmethod
    async def delete_reaction(self, item_id: str, user_id: str) -> FeedItem:
        ...

    @abstractmethod
    async def add_comment(self, item_id: str, comment: FeedComment) -> FeedItem:
        ...

    # Notifications

    @abstractmethod
    async def add_notification(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    async def list_notifications(self, recipient_id: str, limit: int) -> List[Notification]:
        """Newest first"""

    @abstractmethod
    async def mark_notification_read(self, recipient_id: str, notification_id: str) -> bool:
        ...


# User columns a profile edit may touch; scores and streaks change only through
# record_wake_up_totals and deduct_total_score
PROFILE_FIELDS = ("display_name", "sleep_goal", "bedtime_goal", "timezone", "profile_image_url", "fcm_token")


def check_profile_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Not profile fields: {sorted(unknown)}")


def ordered_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


class MemoryStore(Store):
    """In-process store; nothing survives a restart"""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._password_hashes: Dict[str, str] = {}
        self._sessions: Dict[str, Session] = {}
        self._challenges: Dict[str, MathProblem] = {}
        self._wake_ups: Dict[Tuple[str, date], WakeUpLog] = {}
        self._scores: Dict[Tuple[str, date], DailyScore] = {}
        self._shame_events: List[ShameEvent] = []
        self._requests: Dict[str, FriendRequest] = {}
        self._friendships: Dict[Tuple[str, str], Friendship] = {}
        self._feed: Dict[str, FeedItem] = {}
        self._notifications: Dict[str, Notification] = {}
        logger.info("MemoryStore initialized - data is NOT persisted across restarts")

    # Users

    async def create_user(self, user: User, password_hash: str) -> User:
        if await self.get_user_by_email(user.email):
            raise ConflictError(f"Email {user.email} is already registered", reason="email_taken")
        self._users[user.id] = user.model_copy(deep=True)
        self._password_hashes[user.id] = password_hash
        return user.model_copy(deep=True)

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        for user in self._users.values():
            if user.email.lower() == email:
                return user.model_copy(deep=True)
        return None

    async def get_password_hash(self, user_id: str) -> Optional[str]:
        return self._password_hashes.get(user_id)

    def _stored_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return user

    async def update_user_profile(self, user_id: str, fields: Dict[str, Any]) -> User:
        check_profile_fields(fields)
        user = self._stored_user(user_id)
        for name, value in fields.items():
            setattr(user, name, value)
        return user.model_copy(deep=True)

    async def record_wake_up_totals(
        self,
        user_id: str,
        points: int,
        current_streak: int,
        longest_streak: int,
        last_wake_up_date: date
    ) -> User:
        user = self._stored_user(user_id)
        user.total_score += points
        user.current_streak = current_streak
        user.longest_streak = longest_streak
        user.last_wake_up_date = last_wake_up_date
        return user.model_copy(deep=True)

    async def deduct_total_score(self, user_id: str, points: int) -> User:
        user = self._stored_user(user_id)
        user.total_score = max(0, user.total_score - points)
        return user.model_copy(deep=True)

    async def get_users(self, user_ids: Iterable[str]) -> List[User]:
        return [self._users[uid].model_copy(deep=True) for uid in user_ids if uid in self._users]

    async def search_users(self, query: str, limit: int) -> List[User]:
        needle = query.lower()
        matches = [
            user for user in self._users.values()
            if needle in user.display_name.lower() or needle in user.email.lower()
        ]
        matches.sort(key=lambda u: u.display_name.lower())
        return [u.model_copy(deep=True) for u in matches[:limit]]

    # Sessions

    async def create_session(self, session: Session) -> Session:
        self._sessions[session.token] = session.model_copy()
        return session

    async def get_session(self, token: str) -> Optional[Session]:
        session = self._sessions.get(token)
        return session.model_copy() if session else None

    async def delete_session(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    # Pending wake-up challenges

    async def set_pending_challenge(self, user_id: str, problem: MathProblem) -> None:
        self._challenges[user_id] = problem.model_copy()

    async def get_pending_challenge(self, user_id: str) -> Optional[MathProblem]:
        problem = self._challenges.get(user_id)
        return problem.model_copy() if problem else None

    async def clear_pending_challenge(self, user_id: str) -> None:
        self._challenges.pop(user_id, None)

    # Wake-up logs

    async def add_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        key = (log.user_id, log.log_date)
        if key in self._wake_ups:
            raise ConflictError(
                "Already woke up today",
                reason="already_logged_today",
                user_id=log.user_id,
            )
        self._wake_ups[key] = log.model_copy()
        return log.model_copy()

    async def get_wake_up_log(self, user_id: str, log_date: date) -> Optional[WakeUpLog]:
        log = self._wake_ups.get((user_id, log_date))
        return log.model_copy() if log else None

    async def update_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        self._wake_ups[(log.user_id, log.log_date)] = log.model_copy()
        return log.model_copy()

    async def list_wake_up_logs(self, user_id: str, limit: int) -> List[WakeUpLog]:
        logs = [log for (uid, _), log in self._wake_ups.items() if uid == user_id]
        logs.sort(key=lambda log: log.timestamp, reverse=True)
        return [log.model_copy() for log in logs[:limit]]

    # Daily scores

    async def save_daily_score(self, score: DailyScore) -> DailyScore:
        self._scores[(score.user_id, score.date)] = score.model_copy()
        return score.model_copy()

    async def get_daily_score(self, user_id: str, score_date: date) -> Optional[DailyScore]:
        score = self._scores.get((user_id, score_date))
        return score.model_copy() if score else None

    async def list_daily_scores(self, user_id: str, limit: int) -> List[DailyScore]:
        scores = [s for (uid, _), s in self._scores.items() if uid == user_id]
        scores.sort(key=lambda s: s.date, reverse=True)
        return [s.model_copy() for s in scores[:limit]]

    # Shame events

    async def add_shame_event(self, event: ShameEvent) -> ShameEvent:
        self._shame_events.append(event.model_copy())
        return event

    async def count_shame_events(self, target_user_id: str, event_date: date) -> int:
        return sum(
            1 for e in self._shame_events
            if e.target_user_id == target_user_id and e.event_date == event_date
        )

    # Friend requests

    async def add_friend_request(self, request: FriendRequest) -> FriendRequest:
        self._requests[request.id] = request.model_copy()
        return request.model_copy()

    async def get_friend_request(self, request_id: str) -> Optional[FriendRequest]:
        request = self._requests.get(request_id)
        return request.model_copy() if request else None

    async def update_friend_request(self, request: FriendRequest) -> FriendRequest:
        self._requests[request.id] = request.model_copy()
        return request.model_copy()

    async def delete_friend_request(self, request_id: str) -> bool:
        return self._requests.pop(request_id, None) is not None

    async def list_pending_requests(
        self,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None
    ) -> List[FriendRequest]:
        requests = [
            r for r in self._requests.values()
            if r.status == FriendRequestStatus.PENDING
            and (to_user_id is None or r.to_user_id == to_user_id)
            and (from_user_id is None or r.from_user_id == from_user_id)
        ]
        requests.sort(key=lambda r: r.timestamp, reverse=True)
        return [r.model_copy() for r in requests]

    # Friendships

    async def add_friendship(self, friendship: Friendship) -> Friendship:
        key = ordered_pair(friendship.user_id_1, friendship.user_id_2)
        if key in self._friendships:
            raise ConflictError("Already friends", reason="already_friends")
        self._friendships[key] = friendship.model_copy()
        return friendship.model_copy()

    async def get_friendship(self, user_a: str, user_b: str) -> Optional[Friendship]:
        friendship = self._friendships.get(ordered_pair(user_a, user_b))
        return friendship.model_copy() if friendship else None

    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        return self._friendships.pop(ordered_pair(user_a, user_b), None) is not None

    async def list_friend_ids(self, user_id: str) -> List[str]:
        return [
            friendship.other(user_id)
            for key, friendship in self._friendships.items()
            if user_id in key
        ]

    # Feed

    async def add_feed_item(self, item: FeedItem) -> FeedItem:
        self._feed[item.id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get_feed_item(self, item_id: str) -> Optional[FeedItem]:
        item = self._feed.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def list_feed_items(self, author_ids: Iterable[str], limit: int) -> List[FeedItem]:
        authors = set(author_ids)
        items = [item for item in self._feed.values() if item.user_id in authors]
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return [item.model_copy(deep=True) for item in items[:limit]]

    async def upsert_reaction(self, item_id: str, reaction: FeedReaction) -> FeedItem:
        item = self._feed[item_id]
        for existing in item.reactions:
            if existing.user_id == reaction.user_id:
                existing.type = reaction.type
                existing.user_name = reaction.user_name
                break
        else:
            item.reactions.append(reaction.model_copy())
        return item.model_copy(deep=True)

    async def delete_reaction(self, item_id: str, user_id: str) -> FeedItem:
        item = self._feed[item_id]
        item.reactions = [r for r in item.reactions if r.user_id != user_id]
        return item.model_copy(deep=True)

    async def add_comment(self, item_id: str, comment: FeedComment) -> FeedItem:
        item = self._feed[item_id]
        item.comments.append(comment.model_copy())
        return item.model_copy(deep=True)

    # Notifications

    async def add_notification(self, notification: Notification) -> Notification:
        self._notifications[notification.id] = notification.model_copy(deep=True)
        return notification

    async def list_notifications(self, recipient_id: str, limit: int) -> List[Notification]:
        items = [n for n in self._notifications.values() if n.recipient_id == recipient_id]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return [n.model_copy(deep=True) for n in items[:limit]]

    async def mark_notification_read(self, recipient_id: str, notification_id: str) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None or notification.recipient_id != recipient_id:
            return False
        notification.read = True
        return True
