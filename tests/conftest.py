"""Global test fixtures and utilities for shame-game tests"""
import os

# Must be set before shame_game.config is imported
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["FCM_PROJECT_ID"] = ""
os.environ["ENABLE_SENTRY"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from shame_game.db.store import MemoryStore
from shame_game.models import Friendship, User
from shame_game.services.auth_service import AuthService
from shame_game.services.feed_service import FeedService
from shame_game.services.friends_service import FriendsService
from shame_game.services.notification_service import NotificationService, PushSender
from shame_game.services.wakeup_service import WakeUpService


# ============================================================================
# Time & Push Fixtures
# ============================================================================

class FixedClock:
    """Controllable replacement for now_utc()"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


class RecordingPushSender(PushSender):
    """Collects pushes instead of sending them"""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def send(self, token: str, title: str, body: str, data: Dict[str, Any]) -> None:
        self.sent.append({"token": token, "title": title, "body": body, "data": data})


@pytest.fixture
def clock():
    """Monday 2024-01-15, 06:30 UTC (before the default 7:00 AM goal)"""
    return FixedClock(datetime(2024, 1, 15, 6, 30, tzinfo=timezone.utc))


@pytest.fixture
def push_sender():
    return RecordingPushSender()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notification_service(store, push_sender, clock):
    return NotificationService(store, push_sender=push_sender, clock=clock)


@pytest.fixture
def wakeup_service(store, notification_service, clock):
    return WakeUpService(store, notification_service, clock=clock, rng=random.Random(42))


@pytest.fixture
def friends_service(store, notification_service, wakeup_service, clock):
    return FriendsService(store, notification_service, wakeup_service, clock=clock)


@pytest.fixture
def feed_service(store, wakeup_service, notification_service, clock):
    return FeedService(store, wakeup_service, notification_service, clock=clock)


@pytest.fixture
def auth_service(store, clock):
    return AuthService(store, clock=clock, bcrypt_rounds=4)


# ============================================================================
# User Fixtures
# ============================================================================

async def create_test_user(
    store: MemoryStore,
    user_id: str,
    display_name: str,
    email: Optional[str] = None,
    **fields
) -> User:
    """Insert a user directly, bypassing sign-up"""
    user = User(
        id=user_id,
        email=email or f"{user_id}@example.com",
        display_name=display_name,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        **fields
    )
    return await store.create_user(user, "not-a-real-hash")


async def make_friends(store: MemoryStore, user_a: str, user_b: str) -> Friendship:
    """Create a friendship edge directly"""
    return await store.add_friendship(Friendship(
        id=f"friendship-{user_a}-{user_b}",
        user_id_1=user_a,
        user_id_2=user_b,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    ))


@pytest.fixture
async def alice(store):
    return await create_test_user(store, "alice", "Alice")


@pytest.fixture
async def bob(store):
    return await create_test_user(store, "bob", "Bob")


@pytest.fixture
async def carol(store):
    return await create_test_user(store, "carol", "Carol")


@pytest.fixture
def user_factory(store):
    """Async factory: await user_factory("dave", "Dave", timezone="Asia/Tokyo")"""
    async def _create(user_id: str, display_name: str, **fields) -> User:
        return await create_test_user(store, user_id, display_name, **fields)
    return _create


@pytest.fixture
def befriend(store):
    """Async helper: await befriend("alice", "bob")"""
    async def _befriend(user_a: str, user_b: str) -> Friendship:
        return await make_friends(store, user_a, user_b)
    return _befriend
