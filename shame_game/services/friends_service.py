"""
FriendsService - Friend Graph Business Logic

Request lifecycle:
    none -> pending -> accepted (friends) | rejected (none)
A pending request can also be cancelled by its sender.

Friendships are symmetric: one edge per unordered pair of users.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List
from uuid import uuid4

from shame_game.config import SEARCH_LIMIT
from shame_game.db.store import Store
from shame_game.exceptions import (
    AuthorizationError,
    ConflictError,
    RecordNotFoundError,
    ValidationError,
)
from shame_game.models import (
    FriendRequest,
    FriendRequestStatus,
    Friendship,
    FriendshipStatus,
    User,
)
from shame_game.observability.metrics import friend_requests_total
from shame_game.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@dataclass
class UserSearchResult:
    user: User
    status: FriendshipStatus


class FriendsService:
    """
    Service for the friend graph.

    Responsibilities:
    - Sending, accepting, rejecting and cancelling friend requests
    - Removing friends
    - User search annotated with friendship status
    - Friend listings (including who is currently shameable)
    """

    def __init__(
        self,
        store: Store,
        notification_service,
        wakeup_service,
        clock: Callable[[], datetime] = now_utc,
        search_limit: int = SEARCH_LIMIT
    ):
        self.store = store
        self.notifications = notification_service
        self.wakeup = wakeup_service
        self.clock = clock
        self.search_limit = search_limit

    async def _require_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return user

    async def _require_request(self, request_id: str) -> FriendRequest:
        request = await self.store.get_friend_request(request_id)
        if request is None or request.status != FriendRequestStatus.PENDING:
            raise RecordNotFoundError(
                f"Friend request {request_id} not found",
                record_type="FriendRequest",
                record_id=request_id,
            )
        return request

    async def _find_pending(self, from_user_id: str, to_user_id: str):
        for request in await self.store.list_pending_requests(from_user_id=from_user_id):
            if request.to_user_id == to_user_id:
                return request
        return None

    async def get_friendship_status(self, user_id: str, other_id: str) -> FriendshipStatus:
        """Relationship between user_id and other_id, from user_id's side"""
        if await self.store.get_friendship(user_id, other_id):
            return FriendshipStatus.FRIENDS
        if await self._find_pending(user_id, other_id):
            return FriendshipStatus.PENDING_OUTGOING
        if await self._find_pending(other_id, user_id):
            return FriendshipStatus.PENDING_INCOMING
        return FriendshipStatus.NONE

    async def send_request(self, from_user_id: str, to_user_id: str) -> FriendRequest:
        """
        Send a friend request.

        Raises:
            ValidationError: Request to self
            RecordNotFoundError: Target user does not exist
            ConflictError: Already friends or a request is pending either way
        """
        if from_user_id == to_user_id:
            raise ValidationError(
                "You cannot send a friend request to yourself",
                field="to_user_id",
                value=to_user_id,
                user_id=from_user_id,
            )

        sender = await self._require_user(from_user_id)
        target = await self._require_user(to_user_id)

        status = await self.get_friendship_status(from_user_id, to_user_id)
        if status == FriendshipStatus.FRIENDS:
            raise ConflictError("Already friends", reason="already_friends", user_id=from_user_id)
        if status != FriendshipStatus.NONE:
            raise ConflictError("Friend request already pending", reason="already_requested", user_id=from_user_id)

        request = await self.store.add_friend_request(FriendRequest(
            id=str(uuid4()),
            from_user_id=sender.id,
            to_user_id=target.id,
            from_user_display_name=sender.display_name,
            to_user_display_name=target.display_name,
            status=FriendRequestStatus.PENDING,
            timestamp=self.clock(),
        ))

        friend_requests_total.labels(action="sent").inc()
        logger.info(f"Friend request {request.id}: {from_user_id} -> {to_user_id}")

        await self.notifications.notify_friend_request(request)
        return request

    async def accept_request(self, request_id: str, user_id: str) -> Friendship:
        """Accept a pending request addressed to user_id"""
        request = await self._require_request(request_id)
        if request.to_user_id != user_id:
            raise AuthorizationError(
                "Only the recipient can accept a friend request",
                resource="friend request",
                user_id=user_id,
            )

        friendship = await self.store.add_friendship(Friendship(
            id=str(uuid4()),
            user_id_1=request.from_user_id,
            user_id_2=request.to_user_id,
            created_at=self.clock(),
        ))
        request.status = FriendRequestStatus.ACCEPTED
        await self.store.update_friend_request(request)

        friend_requests_total.labels(action="accepted").inc()
        logger.info(f"Friend request {request_id} accepted: {request.from_user_id} <-> {user_id}")

        await self.notifications.notify_friend_accepted(request)
        return friendship

    async def reject_request(self, request_id: str, user_id: str) -> FriendRequest:
        """Reject a pending request addressed to user_id"""
        request = await self._require_request(request_id)
        if request.to_user_id != user_id:
            raise AuthorizationError(
                "Only the recipient can reject a friend request",
                resource="friend request",
                user_id=user_id,
            )

        request.status = FriendRequestStatus.REJECTED
        await self.store.update_friend_request(request)

        friend_requests_total.labels(action="rejected").inc()
        logger.info(f"Friend request {request_id} rejected by {user_id}")
        return request

    async def cancel_request(self, request_id: str, user_id: str) -> None:
        """Withdraw a pending request sent by user_id"""
        request = await self._require_request(request_id)
        if request.from_user_id != user_id:
            raise AuthorizationError(
                "Only the sender can cancel a friend request",
                resource="friend request",
                user_id=user_id,
            )

        await self.store.delete_friend_request(request_id)
        friend_requests_total.labels(action="cancelled").inc()
        logger.info(f"Friend request {request_id} cancelled by {user_id}")

    async def remove_friend(self, user_id: str, friend_id: str) -> None:
        """Delete the friendship between user_id and friend_id"""
        if not await self.store.delete_friendship(user_id, friend_id):
            raise RecordNotFoundError(
                f"{user_id} and {friend_id} are not friends",
                record_type="Friendship",
                record_id=friend_id,
                user_id=user_id,
            )
        logger.info(f"Friendship removed: {user_id} <-> {friend_id}")

    async def search(self, user_id: str, query: str) -> List[UserSearchResult]:
        """
        Find users by display name or email.

        Excludes the searcher and their friends; each hit carries its
        friendship status (none or pending either way).
        """
        needle = (query or "").strip()
        if not needle:
            raise ValidationError("Search query must not be empty", field="query", value=query, user_id=user_id)

        friend_ids = set(await self.store.list_friend_ids(user_id))
        excluded = len(friend_ids) + 1
        candidates = await self.store.search_users(needle, self.search_limit + excluded)

        results = []
        for candidate in candidates:
            if candidate.id == user_id or candidate.id in friend_ids:
                continue
            status = await self.get_friendship_status(user_id, candidate.id)
            results.append(UserSearchResult(user=candidate, status=status))
            if len(results) >= self.search_limit:
                break
        return results

    async def list_friends(self, user_id: str) -> List[User]:
        """Friends sorted by display name"""
        friend_ids = await self.store.list_friend_ids(user_id)
        friends = await self.store.get_users(friend_ids)
        return sorted(friends, key=lambda u: u.display_name.lower())

    async def list_pending(self, user_id: str) -> List[FriendRequest]:
        """Incoming pending requests, newest first"""
        return await self.store.list_pending_requests(to_user_id=user_id)

    async def list_sent(self, user_id: str) -> List[FriendRequest]:
        """Outgoing pending requests, newest first"""
        return await self.store.list_pending_requests(from_user_id=user_id)

    async def are_friends(self, user_id: str, other_id: str) -> bool:
        return await self.store.get_friendship(user_id, other_id) is not None

    async def list_shameable_friends(self, user_id: str) -> List[User]:
        """Friends past their wake-up goal today with no wake-up logged"""
        return [
            friend for friend in await self.list_friends(user_id)
            if await self.wakeup.can_be_shamed(friend)
        ]

    async def send_shame_opportunities(self, user_id: str) -> List[User]:
        """Notify user_id about currently shameable friends"""
        user = await self._require_user(user_id)
        oversleepers = await self.list_shameable_friends(user_id)
        await self.notifications.notify_shame_opportunities(user, oversleepers)
        return oversleepers
