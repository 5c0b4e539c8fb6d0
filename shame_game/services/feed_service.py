"""
FeedService - Social Feed Business Logic

The feed a user sees is every item authored by them or their friends,
newest first. Friends react (one reaction each), comment, and shame.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional
from uuid import uuid4

from shame_game.config import FEED_LIMIT
from shame_game.db.store import Store
from shame_game.exceptions import AuthorizationError, RecordNotFoundError, ValidationError
from shame_game.models import (
    FeedComment,
    FeedItem,
    FeedItemType,
    FeedReaction,
    ReactionType,
    User,
)
from shame_game.observability.metrics import feed_interactions_total, shames_total
from shame_game.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500

PRESET_COMMENTS = [
    "Nice work! 💪",
    "Keep it up! 🔥",
    "Great job! 👏",
    "Awesome! 🎉",
    "You got this! 💯",
]


class FeedService:
    """
    Service for the activity feed.

    Responsibilities:
    - Assembling a user's feed from their own and friends' items
    - Reactions (upsert per user) and comments
    - Shaming friends who overslept
    """

    def __init__(
        self,
        store: Store,
        wakeup_service,
        notification_service,
        clock: Callable[[], datetime] = now_utc,
        feed_limit: int = FEED_LIMIT
    ):
        self.store = store
        self.wakeup = wakeup_service
        self.notifications = notification_service
        self.clock = clock
        self.feed_limit = feed_limit

    async def _require_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return user

    async def _visible_item(self, item_id: str, user_id: str) -> FeedItem:
        """Item that user_id is allowed to see"""
        item = await self.store.get_feed_item(item_id)
        if item is None:
            raise RecordNotFoundError(
                f"Feed item {item_id} not found",
                record_type="FeedItem",
                record_id=item_id,
                user_id=user_id,
            )

        if item.user_id != user_id and not await self.store.get_friendship(user_id, item.user_id):
            raise AuthorizationError(
                f"Feed item {item_id} is not visible to {user_id}",
                resource="feed item",
                user_id=user_id,
            )
        return item

    async def get_feed(self, user_id: str, limit: Optional[int] = None) -> List[FeedItem]:
        """Own and friends' items, newest first"""
        limit = min(limit or self.feed_limit, self.feed_limit)
        authors = [user_id] + await self.store.list_friend_ids(user_id)
        return await self.store.list_feed_items(authors, limit)

    async def react(self, item_id: str, user_id: str, reaction_type: ReactionType) -> FeedItem:
        """Add or replace user_id's reaction on an item"""
        user = await self._require_user(user_id)
        await self._visible_item(item_id, user_id)

        item = await self.store.upsert_reaction(item_id, FeedReaction(
            id=str(uuid4()),
            user_id=user.id,
            user_name=user.display_name,
            type=reaction_type,
        ))

        feed_interactions_total.labels(kind="reaction").inc()
        logger.debug(f"{user_id} reacted {reaction_type.value} on {item_id}")
        return item

    async def remove_reaction(self, item_id: str, user_id: str) -> FeedItem:
        await self._visible_item(item_id, user_id)
        return await self.store.delete_reaction(item_id, user_id)

    async def comment(self, item_id: str, user_id: str, text: str) -> FeedItem:
        """Append a comment (trimmed, 1-500 characters)"""
        message = (text or "").strip()
        if not message:
            raise ValidationError("Comment must not be empty", field="message", value=text, user_id=user_id)
        if len(message) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
                field="message",
                user_id=user_id,
            )

        user = await self._require_user(user_id)
        await self._visible_item(item_id, user_id)

        item = await self.store.add_comment(item_id, FeedComment(
            id=str(uuid4()),
            user_id=user.id,
            user_name=user.display_name,
            message=message,
            timestamp=self.clock(),
        ))

        feed_interactions_total.labels(kind="comment").inc()
        return item

    async def shame(self, shamer_id: str, target_id: str) -> FeedItem:
        """
        Publicly shame a friend.

        Posts a shame item under the target's name, deducts points from the
        target's score for today and notifies the target.

        Raises:
            AuthorizationError: Target is not a friend
        """
        shamer = await self._require_user(shamer_id)
        target = await self._require_user(target_id)

        if not await self.store.get_friendship(shamer_id, target_id):
            raise AuthorizationError(
                f"{shamer_id} cannot shame {target_id}: not friends",
                resource="shaming this user",
                user_id=shamer_id,
            )

        event = await self.wakeup.apply_shame(target_id, shamer_id)
        shame_count = await self.store.count_shame_events(target_id, event.event_date)

        item = await self.store.add_feed_item(FeedItem(
            id=str(uuid4()),
            user_id=target.id,
            user_name=target.display_name,
            type=FeedItemType.SHAME,
            message=f"{target.display_name} got SHAMED by {shamer.display_name}. Still sleeping? 😴",
            timestamp=self.clock(),
            related_user_id=shamer.id,
            shame_count=shame_count,
        ))

        shames_total.labels(deducted="yes" if event.points_deducted else "no").inc()
        logger.info(f"{shamer_id} shamed {target_id} (shame #{shame_count} today)")

        await self.notifications.notify_shame(target.id, shamer)
        return item

    @staticmethod
    def preset_comments() -> List[str]:
        return list(PRESET_COMMENTS)
