"""Unit tests for PostgresStore (shame_game/db/postgres_store.py)"""
import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import psycopg

from shame_game.db.postgres_store import PostgresStore
from shame_game.exceptions import ConflictError, ConnectionError, QueryError, RecordNotFoundError
from shame_game.models import (
    FeedReaction,
    Friendship,
    MathOperation,
    MathProblem,
    ReactionType,
    User,
    WakeUpLog,
)

NOW = datetime(2024, 1, 15, 6, 30, tzinfo=timezone.utc)


def make_store(mock_cursor):
    """PostgresStore wired to a mocked connection/cursor pair"""
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__aenter__.return_value = mock_cursor
    mock_conn.commit = AsyncMock()

    database = MagicMock()
    database.connection.return_value.__aenter__.return_value = mock_conn
    return PostgresStore(database), mock_conn


def make_cursor(fetchone=None, fetchall=None, rowcount=1):
    mock_cursor = AsyncMock()
    mock_cursor.execute = AsyncMock()
    mock_cursor.fetchone = AsyncMock(return_value=fetchone)
    mock_cursor.fetchall = AsyncMock(return_value=fetchall or [])
    mock_cursor.rowcount = rowcount
    return mock_cursor


def user_row(**overrides):
    row = {
        "id": "alice",
        "email": "alice@example.com",
        "display_name": "Alice",
        "sleep_goal": "7:00 AM",
        "bedtime_goal": "11:00 PM",
        "profile_image_url": None,
        "fcm_token": None,
        "timezone": "UTC",
        "created_at": NOW,
        "total_score": 73,
        "current_streak": 1,
        "longest_streak": 1,
        "last_wake_up_date": date(2024, 1, 15),
    }
    row.update(overrides)
    return row


# ============================================================================
# User Operations Tests
# ============================================================================

@pytest.mark.asyncio
async def test_create_user_inserts_hash():
    """Test creating a user stores the password hash and commits"""
    mock_cursor = make_cursor()
    store, mock_conn = make_store(mock_cursor)
    user = User(**user_row())

    await store.create_user(user, "$2b$04$hash")

    mock_cursor.execute.assert_called_once()
    query, params = mock_cursor.execute.call_args[0]
    assert "INSERT INTO users" in query
    assert "alice@example.com" in params
    assert "$2b$04$hash" in params
    mock_conn.commit.assert_called_once()


@pytest.mark.asyncio
async def test_create_user_duplicate_email():
    """Test a unique violation surfaces as a conflict"""
    mock_cursor = make_cursor()
    mock_cursor.execute.side_effect = psycopg.errors.UniqueViolation("duplicate key")
    store, _ = make_store(mock_cursor)

    with pytest.raises(ConflictError) as exc_info:
        await store.create_user(User(**user_row()), "hash")
    assert exc_info.value.reason == "email_taken"


@pytest.mark.asyncio
async def test_get_user_found():
    mock_cursor = make_cursor(fetchone=user_row())
    store, _ = make_store(mock_cursor)

    user = await store.get_user("alice")

    assert user.display_name == "Alice"
    assert user.total_score == 73
    assert mock_cursor.execute.call_args[0][1] == ("alice",)


@pytest.mark.asyncio
async def test_get_user_missing():
    store, _ = make_store(make_cursor(fetchone=None))
    assert await store.get_user("ghost") is None


@pytest.mark.asyncio
async def test_update_user_profile_writes_only_given_columns():
    mock_cursor = make_cursor(fetchone=user_row(display_name="Alice B"))
    store, mock_conn = make_store(mock_cursor)

    user = await store.update_user_profile("alice", {"display_name": "Alice B"})

    query, params = mock_cursor.execute.call_args[0]
    assert "SET display_name = %s WHERE id = %s" in query
    assert "total_score" not in query.split("RETURNING")[0]
    assert params == ("Alice B", "alice")
    assert user.display_name == "Alice B"
    mock_conn.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_user_profile_rejects_unknown_column():
    mock_cursor = make_cursor()
    store, _ = make_store(mock_cursor)

    with pytest.raises(ValueError):
        await store.update_user_profile("alice", {"total_score": 1000})
    mock_cursor.execute.assert_not_called()


@pytest.mark.asyncio
async def test_update_user_profile_missing_row():
    store, _ = make_store(make_cursor(fetchone=None))
    with pytest.raises(RecordNotFoundError):
        await store.update_user_profile("ghost", {"display_name": "Ghost"})


@pytest.mark.asyncio
async def test_record_wake_up_totals_increments_in_sql():
    mock_cursor = make_cursor(fetchone=user_row(total_score=88, current_streak=2, longest_streak=2))
    store, _ = make_store(mock_cursor)

    user = await store.record_wake_up_totals("alice", 15, 2, 2, date(2024, 1, 16))

    query, params = mock_cursor.execute.call_args[0]
    assert "total_score = total_score + %s" in query
    assert "display_name" not in query.split("RETURNING")[0]
    assert params == (15, 2, 2, date(2024, 1, 16), "alice")
    assert user.total_score == 88


@pytest.mark.asyncio
async def test_deduct_total_score_floors_in_sql():
    mock_cursor = make_cursor(fetchone=user_row(total_score=0))
    store, _ = make_store(mock_cursor)

    await store.deduct_total_score("alice", 10)

    query, params = mock_cursor.execute.call_args[0]
    assert "GREATEST(total_score - %s, 0)" in query
    assert params == (10, "alice")


@pytest.mark.asyncio
async def test_deduct_total_score_missing_row():
    store, _ = make_store(make_cursor(fetchone=None))
    with pytest.raises(RecordNotFoundError):
        await store.deduct_total_score("ghost", 10)



@pytest.mark.asyncio
async def test_get_users_empty_skips_query():
    mock_cursor = make_cursor()
    store, _ = make_store(mock_cursor)

    assert await store.get_users([]) == []
    mock_cursor.execute.assert_not_called()


@pytest.mark.asyncio
async def test_search_users_lowercases_pattern():
    mock_cursor = make_cursor(fetchall=[user_row()])
    store, _ = make_store(mock_cursor)

    users = await store.search_users("ALI", 12)

    assert [u.id for u in users] == ["alice"]
    query, params = mock_cursor.execute.call_args[0]
    assert "LIKE" in query
    assert params == ("%ali%", "%ali%", 12)


# ============================================================================
# Error handling
# ============================================================================

@pytest.mark.asyncio
async def test_operational_error_becomes_connection_error():
    mock_cursor = make_cursor()
    mock_cursor.execute.side_effect = psycopg.OperationalError("connection refused")
    store, _ = make_store(mock_cursor)

    with pytest.raises(ConnectionError):
        await store.get_user("alice")


@pytest.mark.asyncio
async def test_query_error_keeps_query():
    mock_cursor = make_cursor()
    mock_cursor.execute.side_effect = psycopg.errors.UndefinedTable("no such table")
    store, _ = make_store(mock_cursor)

    with pytest.raises(QueryError) as exc_info:
        await store.list_wake_up_logs("alice", 5)
    assert "wake_up_logs" in exc_info.value.query


@pytest.mark.asyncio
async def test_ping_reports_failure():
    mock_cursor = make_cursor()
    mock_cursor.execute.side_effect = psycopg.OperationalError("down")
    store, _ = make_store(mock_cursor)

    assert await store.ping() is False


# ============================================================================
# Wake-up Tests
# ============================================================================

@pytest.mark.asyncio
async def test_pending_challenge_round_trip_mapping():
    mock_cursor = make_cursor(fetchone={
        "operand1": 70, "operand2": 30, "operation": "-", "correct_answer": 40,
    })
    store, _ = make_store(mock_cursor)

    problem = await store.get_pending_challenge("alice")

    assert problem.operation == MathOperation.SUBTRACTION
    assert problem.question_text == "70 - 30 = ?"


@pytest.mark.asyncio
async def test_set_pending_challenge_upserts():
    mock_cursor = make_cursor()
    store, _ = make_store(mock_cursor)

    await store.set_pending_challenge(
        "alice", MathProblem(operand1=40, operand2=35, operation=MathOperation.ADDITION, correct_answer=75)
    )

    query, params = mock_cursor.execute.call_args[0]
    assert "ON CONFLICT (user_id) DO UPDATE" in query
    assert params == ("alice", 40, 35, "+", 75)


@pytest.mark.asyncio
async def test_add_wake_up_log_duplicate_day():
    mock_cursor = make_cursor()
    mock_cursor.execute.side_effect = psycopg.errors.UniqueViolation("wake_up_logs_user_id_log_date_key")
    store, _ = make_store(mock_cursor)
    log = WakeUpLog(
        id="log-1", user_id="alice", timestamp=NOW, log_date=date(2024, 1, 15),
        goal_time="7:00 AM", actual_time="6:30 AM",
    )

    with pytest.raises(ConflictError) as exc_info:
        await store.add_wake_up_log(log)
    assert exc_info.value.reason == "already_logged_today"


@pytest.mark.asyncio
async def test_count_shame_events():
    store, _ = make_store(make_cursor(fetchone={"count": 3}))
    assert await store.count_shame_events("alice", date(2024, 1, 15)) == 3


# ============================================================================
# Friendship Tests
# ============================================================================

@pytest.mark.asyncio
async def test_add_friendship_orders_pair():
    mock_cursor = make_cursor()
    store, _ = make_store(mock_cursor)

    await store.add_friendship(Friendship(id="f-1", user_id_1="zoe", user_id_2="adam", created_at=NOW))

    params = mock_cursor.execute.call_args[0][1]
    assert params[1:3] == ("adam", "zoe")


@pytest.mark.asyncio
async def test_list_pending_requests_filters():
    mock_cursor = make_cursor(fetchall=[])
    store, _ = make_store(mock_cursor)

    await store.list_pending_requests(to_user_id="bob")

    query, params = mock_cursor.execute.call_args[0]
    assert "status = 'pending'" in query
    assert "to_user_id = %s" in query
    assert "from_user_id" not in query
    assert params == ["bob"]


# ============================================================================
# Feed Tests
# ============================================================================

@pytest.mark.asyncio
async def test_upsert_reaction_returns_item_with_interactions():
    item_row = {
        "id": "item-1", "user_id": "alice", "user_name": "Alice", "type": "wake_up",
        "message": "Alice woke up", "timestamp": NOW, "related_user_id": None, "shame_count": 0,
    }
    mock_cursor = make_cursor(fetchone=item_row)
    mock_cursor.fetchall.side_effect = [
        [{"id": "r-1", "feed_item_id": "item-1", "user_id": "bob", "user_name": "Bob", "type": "fire"}],
        [],
    ]
    store, _ = make_store(mock_cursor)

    item = await store.upsert_reaction(
        "item-1", FeedReaction(id="r-2", user_id="bob", user_name="Bob", type=ReactionType.FIRE)
    )

    first_query = mock_cursor.execute.call_args_list[0][0][0]
    assert "ON CONFLICT (feed_item_id, user_id) DO UPDATE" in first_query
    assert item.id == "item-1"
    assert [r.type for r in item.reactions] == [ReactionType.FIRE]
    assert item.comments == []


@pytest.mark.asyncio
async def test_list_feed_items_no_authors():
    mock_cursor = make_cursor()
    store, _ = make_store(mock_cursor)

    assert await store.list_feed_items([], 50) == []
    mock_cursor.execute.assert_not_called()


# ============================================================================
# Notification Tests
# ============================================================================

@pytest.mark.asyncio
async def test_mark_notification_read_scoped_to_recipient():
    mock_cursor = make_cursor(rowcount=0)
    store, _ = make_store(mock_cursor)

    assert await store.mark_notification_read("alice", "n-1") is False
    assert mock_cursor.execute.call_args[0][1] == ("n-1", "alice")


# ============================================================================
# Connection pool
# ============================================================================

@pytest.mark.asyncio
async def test_connection_requires_open_pool():
    """Borrowing before init_pool() is a connection error"""
    from shame_game.db.connection import Database

    database = Database("postgresql://localhost/unused")
    assert database.is_open is False

    with pytest.raises(ConnectionError):
        async with database.connection():
            pass


@pytest.mark.asyncio
async def test_close_pool_without_open_is_noop():
    from shame_game.db.connection import Database

    database = Database("postgresql://localhost/unused")
    await database.close_pool()
    assert database.is_open is False
