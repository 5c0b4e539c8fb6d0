"""Unit tests for FeedService"""
import pytest
from datetime import date, datetime, timezone

from shame_game.exceptions import AuthorizationError, RecordNotFoundError, ValidationError
from shame_game.models import FeedItem, FeedItemType, NotificationType, ReactionType


async def post_item(store, author, clock, message="woke up"):
    return await store.add_feed_item(FeedItem(
        id=f"item-{author.id}-{clock().isoformat()}",
        user_id=author.id,
        user_name=author.display_name,
        type=FeedItemType.WAKE_UP,
        message=message,
        timestamp=clock(),
    ))


# ============================================================================
# Feed assembly
# ============================================================================

@pytest.mark.asyncio
async def test_get_feed_includes_self_and_friends_only(feed_service, store, alice, bob, carol, befriend, clock):
    await befriend(alice.id, bob.id)
    own = await post_item(store, alice, clock)
    clock.advance(minutes=1)
    friend = await post_item(store, bob, clock)
    clock.advance(minutes=1)
    await post_item(store, carol, clock)

    feed = await feed_service.get_feed(alice.id)

    assert [item.id for item in feed] == [friend.id, own.id]


@pytest.mark.asyncio
async def test_get_feed_window(store, wakeup_service, notification_service, alice, clock):
    from shame_game.services.feed_service import FeedService
    service = FeedService(store, wakeup_service, notification_service, clock=clock, feed_limit=3)

    for _ in range(5):
        await post_item(store, alice, clock)
        clock.advance(minutes=1)

    feed = await service.get_feed(alice.id)
    assert len(feed) == 3
    assert feed[0].timestamp > feed[-1].timestamp
    assert len(await service.get_feed(alice.id, limit=2)) == 2
    assert len(await service.get_feed(alice.id, limit=500)) == 3


# ============================================================================
# Reactions
# ============================================================================

@pytest.mark.asyncio
async def test_react_upserts_per_user(feed_service, store, alice, bob, befriend, clock):
    await befriend(alice.id, bob.id)
    item = await post_item(store, alice, clock)

    await feed_service.react(item.id, bob.id, ReactionType.APPLAUSE)
    updated = await feed_service.react(item.id, bob.id, ReactionType.FIRE)

    assert len(updated.reactions) == 1
    assert updated.reactions[0].type == ReactionType.FIRE
    assert updated.reactions[0].user_name == "Bob"


@pytest.mark.asyncio
async def test_react_keeps_position_on_update(feed_service, store, alice, bob, carol, befriend, clock):
    await befriend(alice.id, bob.id)
    await befriend(alice.id, carol.id)
    item = await post_item(store, alice, clock)

    await feed_service.react(item.id, bob.id, ReactionType.APPLAUSE)
    await feed_service.react(item.id, carol.id, ReactionType.MUSCLE)
    updated = await feed_service.react(item.id, bob.id, ReactionType.FIRE)

    assert [r.user_id for r in updated.reactions] == [bob.id, carol.id]


@pytest.mark.asyncio
async def test_react_own_item(feed_service, store, alice, clock):
    item = await post_item(store, alice, clock)
    updated = await feed_service.react(item.id, alice.id, ReactionType.MUSCLE)
    assert updated.reactions[0].user_id == alice.id


@pytest.mark.asyncio
async def test_react_missing_item(feed_service, alice):
    with pytest.raises(RecordNotFoundError):
        await feed_service.react("nope", alice.id, ReactionType.FIRE)


@pytest.mark.asyncio
async def test_react_not_visible(feed_service, store, alice, carol, clock):
    item = await post_item(store, alice, clock)
    with pytest.raises(AuthorizationError):
        await feed_service.react(item.id, carol.id, ReactionType.FIRE)


@pytest.mark.asyncio
async def test_remove_reaction(feed_service, store, alice, bob, befriend, clock):
    await befriend(alice.id, bob.id)
    item = await post_item(store, alice, clock)
    await feed_service.react(item.id, bob.id, ReactionType.APPLAUSE)

    updated = await feed_service.remove_reaction(item.id, bob.id)
    assert updated.reactions == []


# ============================================================================
# Comments
# ============================================================================

@pytest.mark.asyncio
async def test_comment_trims_and_appends(feed_service, store, alice, bob, befriend, clock):
    await befriend(alice.id, bob.id)
    item = await post_item(store, alice, clock)

    await feed_service.comment(item.id, bob.id, "  Nice work! 💪  ")
    updated = await feed_service.comment(item.id, alice.id, "Thanks")

    assert [c.message for c in updated.comments] == ["Nice work! 💪", "Thanks"]
    assert updated.comments[0].user_name == "Bob"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "    ", "x" * 501])
async def test_comment_validation(feed_service, store, alice, clock, text):
    item = await post_item(store, alice, clock)
    with pytest.raises(ValidationError):
        await feed_service.comment(item.id, alice.id, text)


@pytest.mark.asyncio
async def test_comment_max_length_allowed(feed_service, store, alice, clock):
    item = await post_item(store, alice, clock)
    updated = await feed_service.comment(item.id, alice.id, "x" * 500)
    assert len(updated.comments[0].message) == 500


@pytest.mark.asyncio
async def test_comment_not_visible(feed_service, store, alice, carol, clock):
    item = await post_item(store, alice, clock)
    with pytest.raises(AuthorizationError):
        await feed_service.comment(item.id, carol.id, "hello")


# ============================================================================
# Shaming
# ============================================================================

@pytest.mark.asyncio
async def test_shame_friend(feed_service, store, alice, bob, befriend, clock):
    await befriend(alice.id, bob.id)
    clock.set(datetime(2024, 1, 15, 7, 15, tzinfo=timezone.utc))

    item = await feed_service.shame(alice.id, bob.id)

    assert item.type == FeedItemType.SHAME
    assert item.user_id == bob.id
    assert item.user_name == "Bob"
    assert item.related_user_id == alice.id
    assert item.message == "Bob got SHAMED by Alice. Still sleeping? 😴"
    assert item.shame_count == 1

    assert (await feed_service.get_feed(alice.id))[0].id == item.id
    assert await store.count_shame_events(bob.id, date(2024, 1, 15)) == 1

    inbox = await store.list_notifications(bob.id, 10)
    assert inbox[0].type == NotificationType.SHAME
    assert "Alice" in inbox[0].body


@pytest.mark.asyncio
async def test_shame_deducts_from_todays_score(feed_service, wakeup_service, store, alice, bob, befriend):
    await befriend(alice.id, bob.id)
    problem = await wakeup_service.generate_challenge(bob.id)
    await wakeup_service.submit_answer(bob.id, problem.correct_answer)

    await feed_service.shame(alice.id, bob.id)
    item = await feed_service.shame(alice.id, bob.id)

    assert item.shame_count == 2
    score = await store.get_daily_score(bob.id, date(2024, 1, 15))
    assert score.score == 73 - 10
    assert (await store.get_user(bob.id)).total_score == 63


@pytest.mark.asyncio
async def test_shame_requires_friendship(feed_service, store, alice, carol):
    with pytest.raises(AuthorizationError):
        await feed_service.shame(alice.id, carol.id)
    assert await store.count_shame_events(carol.id, date(2024, 1, 15)) == 0


@pytest.mark.asyncio
async def test_shame_unknown_target(feed_service, alice):
    with pytest.raises(RecordNotFoundError):
        await feed_service.shame(alice.id, "ghost")


def test_preset_comments(feed_service):
    comments = feed_service.preset_comments()
    assert "Nice work! 💪" in comments
    assert len(comments) == 5
    comments.append("mutated")
    assert len(feed_service.preset_comments()) == 5
