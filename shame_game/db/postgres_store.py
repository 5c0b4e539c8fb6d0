"""PostgreSQL-backed store"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

import psycopg
from psycopg.types.json import Jsonb

from shame_game.db.connection import Database, db as default_db
from shame_game.db.schema import apply_schema
from shame_game.db.store import Store, check_profile_fields, ordered_pair
from shame_game.exceptions import ConflictError, RecordNotFoundError, wrap_external_exception
from shame_game.models import (
    DailyScore,
    FeedComment,
    FeedItem,
    FeedReaction,
    FriendRequest,
    Friendship,
    MathOperation,
    MathProblem,
    Notification,
    Session,
    ShameEvent,
    User,
    WakeUpLog,
)

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "id, email, display_name, sleep_goal, bedtime_goal, profile_image_url, fcm_token, "
    "timezone, created_at, total_score, current_streak, longest_streak, last_wake_up_date"
)


class PostgresStore(Store):
    """Store implementation on top of the psycopg connection pool"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or default_db

    # ==========================================
    # Helpers
    # ==========================================

    async def _fetchone(self, query: str, params: Sequence[Any] = ()) -> Optional[dict]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchone()
        except psycopg.errors.UniqueViolation as e:
            raise ConflictError("Record already exists", reason="unique_violation", cause=e) from e
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="fetchone", context={"query": query}) from e

    async def _fetchall(self, query: str, params: Sequence[Any] = ()) -> List[dict]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="fetchall", context={"query": query}) from e

    async def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the affected row count"""
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    await conn.commit()
                    return cur.rowcount
        except psycopg.errors.UniqueViolation as e:
            raise ConflictError("Record already exists", reason="unique_violation", cause=e) from e
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="execute", context={"query": query}) from e

    async def _write_returning(self, query: str, params: Sequence[Any] = ()) -> Optional[dict]:
        """Run a write with RETURNING, commit, and return the first row"""
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    await conn.commit()
                    return row
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="write_returning", context={"query": query}) from e

    # ==========================================
    # Lifecycle
    # ==========================================

    async def open(self) -> None:
        await self.db.init_pool()
        await apply_schema(self.db)

    async def close(self) -> None:
        await self.db.close_pool()

    async def ping(self) -> bool:
        try:
            row = await self._fetchone("SELECT 1 AS ok")
            return bool(row)
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    # ==========================================
    # Users
    # ==========================================

    async def create_user(self, user: User, password_hash: str) -> User:
        try:
            await self._execute(
                """
                INSERT INTO users (id, email, password_hash, display_name, sleep_goal, bedtime_goal,
                                   profile_image_url, fcm_token, timezone, created_at,
                                   total_score, current_streak, longest_streak, last_wake_up_date)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    user.id, user.email, password_hash, user.display_name, user.sleep_goal,
                    user.bedtime_goal, user.profile_image_url, user.fcm_token, user.timezone,
                    user.created_at, user.total_score, user.current_streak, user.longest_streak,
                    user.last_wake_up_date,
                )
            )
        except ConflictError as e:
            raise ConflictError(
                f"Email {user.email} is already registered", reason="email_taken", cause=e
            ) from e
        logger.info(f"Created user {user.id}")
        return user

    async def get_user(self, user_id: str) -> Optional[User]:
        row = await self._fetchone(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return User(**row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        row = await self._fetchone(
            f"SELECT {_USER_COLUMNS} FROM users WHERE lower(email) = lower(%s)", (email,)
        )
        return User(**row) if row else None

    async def get_password_hash(self, user_id: str) -> Optional[str]:
        row = await self._fetchone("SELECT password_hash FROM users WHERE id = %s", (user_id,))
        return row["password_hash"] if row else None

    async def _update_user_returning(self, user_id: str, set_clause: str, params: Sequence[Any]) -> User:
        row = await self._write_returning(
            f"UPDATE users SET {set_clause} WHERE id = %s RETURNING {_USER_COLUMNS}",
            (*params, user_id)
        )
        if not row:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return User(**row)

    async def update_user_profile(self, user_id: str, fields: Dict[str, Any]) -> User:
        check_profile_fields(fields)
        if not fields:
            user = await self.get_user(user_id)
            if user is None:
                raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
            return user
        # column names come from PROFILE_FIELDS only
        set_clause = ", ".join(f"{name} = %s" for name in fields)
        return await self._update_user_returning(user_id, set_clause, list(fields.values()))

    async def record_wake_up_totals(
        self,
        user_id: str,
        points: int,
        current_streak: int,
        longest_streak: int,
        last_wake_up_date: date
    ) -> User:
        return await self._update_user_returning(
            user_id,
            "total_score = total_score + %s, current_streak = %s, longest_streak = %s, last_wake_up_date = %s",
            (points, current_streak, longest_streak, last_wake_up_date)
        )

    async def deduct_total_score(self, user_id: str, points: int) -> User:
        return await self._update_user_returning(
            user_id, "total_score = GREATEST(total_score - %s, 0)", (points,)
        )

    async def get_users(self, user_ids: Iterable[str]) -> List[User]:
        ids = list(user_ids)
        if not ids:
            return []
        rows = await self._fetchall(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ANY(%s)", (ids,))
        return [User(**row) for row in rows]

    async def search_users(self, query: str, limit: int) -> List[User]:
        pattern = f"%{query.lower()}%"
        rows = await self._fetchall(
            f"""
            SELECT {_USER_COLUMNS} FROM users
            WHERE lower(display_name) LIKE %s OR lower(email) LIKE %s
            ORDER BY lower(display_name)
            LIMIT %s
            """,
            (pattern, pattern, limit)
        )
        return [User(**row) for row in rows]

    # ==========================================
    # Sessions
    # ==========================================

    async def create_session(self, session: Session) -> Session:
        await self._execute(
            "INSERT INTO sessions (token, user_id, created_at, expires_at) VALUES (%s, %s, %s, %s)",
            (session.token, session.user_id, session.created_at, session.expires_at)
        )
        return session

    async def get_session(self, token: str) -> Optional[Session]:
        row = await self._fetchone(
            "SELECT token, user_id, created_at, expires_at FROM sessions WHERE token = %s", (token,)
        )
        return Session(**row) if row else None

    async def delete_session(self, token: str) -> bool:
        return await self._execute("DELETE FROM sessions WHERE token = %s", (token,)) > 0

    # ==========================================
    # Pending wake-up challenges
    # ==========================================

    async def set_pending_challenge(self, user_id: str, problem: MathProblem) -> None:
        await self._execute(
            """
            INSERT INTO pending_challenges (user_id, operand1, operand2, operation, correct_answer)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE SET
                operand1 = EXCLUDED.operand1,
                operand2 = EXCLUDED.operand2,
                operation = EXCLUDED.operation,
                correct_answer = EXCLUDED.correct_answer
            """,
            (user_id, problem.operand1, problem.operand2, problem.operation.value, problem.correct_answer)
        )

    async def get_pending_challenge(self, user_id: str) -> Optional[MathProblem]:
        row = await self._fetchone(
            "SELECT operand1, operand2, operation, correct_answer FROM pending_challenges WHERE user_id = %s",
            (user_id,)
        )
        if not row:
            return None
        return MathProblem(
            operand1=row["operand1"],
            operand2=row["operand2"],
            operation=MathOperation(row["operation"]),
            correct_answer=row["correct_answer"],
        )

    async def clear_pending_challenge(self, user_id: str) -> None:
        await self._execute("DELETE FROM pending_challenges WHERE user_id = %s", (user_id,))

    # ==========================================
    # Wake-up logs
    # ==========================================

    async def add_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        try:
            await self._execute(
                """
                INSERT INTO wake_up_logs (id, user_id, timestamp, log_date, goal_time, actual_time,
                                          math_problem_correct, shame_count)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    log.id, log.user_id, log.timestamp, log.log_date, log.goal_time,
                    log.actual_time, log.math_problem_correct, log.shame_count,
                )
            )
        except ConflictError as e:
            raise ConflictError(
                "Already woke up today", reason="already_logged_today", user_id=log.user_id, cause=e
            ) from e
        return log

    async def get_wake_up_log(self, user_id: str, log_date: date) -> Optional[WakeUpLog]:
        row = await self._fetchone(
            "SELECT * FROM wake_up_logs WHERE user_id = %s AND log_date = %s", (user_id, log_date)
        )
        return WakeUpLog(**row) if row else None

    async def update_wake_up_log(self, log: WakeUpLog) -> WakeUpLog:
        await self._execute(
            "UPDATE wake_up_logs SET shame_count = %s WHERE id = %s", (log.shame_count, log.id)
        )
        return log

    async def list_wake_up_logs(self, user_id: str, limit: int) -> List[WakeUpLog]:
        rows = await self._fetchall(
            "SELECT * FROM wake_up_logs WHERE user_id = %s ORDER BY timestamp DESC LIMIT %s",
            (user_id, limit)
        )
        return [WakeUpLog(**row) for row in rows]

    # ==========================================
    # Daily scores
    # ==========================================

    async def save_daily_score(self, score: DailyScore) -> DailyScore:
        await self._execute(
            """
            INSERT INTO daily_scores (id, user_id, date, score, wake_up_points, consistency_points,
                                      sleep_duration_points, shame_deductions, shame_count)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, date) DO UPDATE SET
                score = EXCLUDED.score,
                wake_up_points = EXCLUDED.wake_up_points,
                consistency_points = EXCLUDED.consistency_points,
                sleep_duration_points = EXCLUDED.sleep_duration_points,
                shame_deductions = EXCLUDED.shame_deductions,
                shame_count = EXCLUDED.shame_count
            """,
            (
                score.id, score.user_id, score.date, score.score, score.wake_up_points,
                score.consistency_points, score.sleep_duration_points, score.shame_deductions,
                score.shame_count,
            )
        )
        return score

    async def get_daily_score(self, user_id: str, score_date: date) -> Optional[DailyScore]:
        row = await self._fetchone(
            "SELECT * FROM daily_scores WHERE user_id = %s AND date = %s", (user_id, score_date)
        )
        return DailyScore(**row) if row else None

    async def list_daily_scores(self, user_id: str, limit: int) -> List[DailyScore]:
        rows = await self._fetchall(
            "SELECT * FROM daily_scores WHERE user_id = %s ORDER BY date DESC LIMIT %s",
            (user_id, limit)
        )
        return [DailyScore(**row) for row in rows]

    # ==========================================
    # Shame events
    # ==========================================

    async def add_shame_event(self, event: ShameEvent) -> ShameEvent:
        await self._execute(
            """
            INSERT INTO shame_events (id, target_user_id, shaming_user_id, timestamp, event_date, points_deducted)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (
                event.id, event.target_user_id, event.shaming_user_id, event.timestamp,
                event.event_date, event.points_deducted,
            )
        )
        return event

    async def count_shame_events(self, target_user_id: str, event_date: date) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) AS count FROM shame_events WHERE target_user_id = %s AND event_date = %s",
            (target_user_id, event_date)
        )
        return row["count"] if row else 0

    # ==========================================
    # Friend requests
    # ==========================================

    async def add_friend_request(self, request: FriendRequest) -> FriendRequest:
        await self._execute(
            """
            INSERT INTO friend_requests (id, from_user_id, to_user_id, from_user_display_name,
                                         to_user_display_name, status, timestamp)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                request.id, request.from_user_id, request.to_user_id, request.from_user_display_name,
                request.to_user_display_name, request.status.value, request.timestamp,
            )
        )
        return request

    async def get_friend_request(self, request_id: str) -> Optional[FriendRequest]:
        row = await self._fetchone("SELECT * FROM friend_requests WHERE id = %s", (request_id,))
        return FriendRequest(**row) if row else None

    async def update_friend_request(self, request: FriendRequest) -> FriendRequest:
        await self._execute(
            "UPDATE friend_requests SET status = %s WHERE id = %s", (request.status.value, request.id)
        )
        return request

    async def delete_friend_request(self, request_id: str) -> bool:
        return await self._execute("DELETE FROM friend_requests WHERE id = %s", (request_id,)) > 0

    async def list_pending_requests(
        self,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None
    ) -> List[FriendRequest]:
        conditions = ["status = 'pending'"]
        params: List[Any] = []
        if to_user_id is not None:
            conditions.append("to_user_id = %s")
            params.append(to_user_id)
        if from_user_id is not None:
            conditions.append("from_user_id = %s")
            params.append(from_user_id)

        rows = await self._fetchall(
            f"SELECT * FROM friend_requests WHERE {' AND '.join(conditions)} ORDER BY timestamp DESC",
            params
        )
        return [FriendRequest(**row) for row in rows]

    # ==========================================
    # Friendships
    # ==========================================

    async def add_friendship(self, friendship: Friendship) -> Friendship:
        user_id_1, user_id_2 = ordered_pair(friendship.user_id_1, friendship.user_id_2)
        try:
            await self._execute(
                "INSERT INTO friendships (id, user_id_1, user_id_2, created_at) VALUES (%s, %s, %s, %s)",
                (friendship.id, user_id_1, user_id_2, friendship.created_at)
            )
        except ConflictError as e:
            raise ConflictError("Already friends", reason="already_friends", cause=e) from e
        return friendship

    async def get_friendship(self, user_a: str, user_b: str) -> Optional[Friendship]:
        row = await self._fetchone(
            "SELECT * FROM friendships WHERE user_id_1 = %s AND user_id_2 = %s", ordered_pair(user_a, user_b)
        )
        return Friendship(**row) if row else None

    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        deleted = await self._execute(
            "DELETE FROM friendships WHERE user_id_1 = %s AND user_id_2 = %s", ordered_pair(user_a, user_b)
        )
        return deleted > 0

    async def list_friend_ids(self, user_id: str) -> List[str]:
        rows = await self._fetchall(
            """
            SELECT user_id_2 AS friend_id FROM friendships WHERE user_id_1 = %s
            UNION
            SELECT user_id_1 AS friend_id FROM friendships WHERE user_id_2 = %s
            """,
            (user_id, user_id)
        )
        return [row["friend_id"] for row in rows]

    # ==========================================
    # Feed
    # ==========================================

    async def _attach_interactions(self, rows: List[dict]) -> List[FeedItem]:
        """Build FeedItems with their reactions and comments"""
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        reaction_rows = await self._fetchall(
            """
            SELECT id, feed_item_id, user_id, user_name, type FROM feed_reactions
            WHERE feed_item_id = ANY(%s) ORDER BY position
            """,
            (ids,)
        )
        comment_rows = await self._fetchall(
            """
            SELECT id, feed_item_id, user_id, user_name, message, timestamp FROM feed_comments
            WHERE feed_item_id = ANY(%s) ORDER BY timestamp
            """,
            (ids,)
        )

        reactions: Dict[str, List[FeedReaction]] = {item_id: [] for item_id in ids}
        for r in reaction_rows:
            reactions[r["feed_item_id"]].append(
                FeedReaction(id=r["id"], user_id=r["user_id"], user_name=r["user_name"], type=r["type"])
            )

        comments: Dict[str, List[FeedComment]] = {item_id: [] for item_id in ids}
        for c in comment_rows:
            comments[c["feed_item_id"]].append(
                FeedComment(
                    id=c["id"], user_id=c["user_id"], user_name=c["user_name"],
                    message=c["message"], timestamp=c["timestamp"],
                )
            )

        return [
            FeedItem(**row, reactions=reactions[row["id"]], comments=comments[row["id"]])
            for row in rows
        ]

    async def add_feed_item(self, item: FeedItem) -> FeedItem:
        await self._execute(
            """
            INSERT INTO feed_items (id, user_id, user_name, type, message, timestamp, related_user_id, shame_count)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                item.id, item.user_id, item.user_name, item.type.value, item.message,
                item.timestamp, item.related_user_id, item.shame_count,
            )
        )
        return item

    async def get_feed_item(self, item_id: str) -> Optional[FeedItem]:
        row = await self._fetchone("SELECT * FROM feed_items WHERE id = %s", (item_id,))
        if not row:
            return None
        items = await self._attach_interactions([row])
        return items[0]

    async def list_feed_items(self, author_ids: Iterable[str], limit: int) -> List[FeedItem]:
        ids = list(author_ids)
        if not ids:
            return []
        rows = await self._fetchall(
            "SELECT * FROM feed_items WHERE user_id = ANY(%s) ORDER BY timestamp DESC LIMIT %s",
            (ids, limit)
        )
        return await self._attach_interactions(rows)

    async def upsert_reaction(self, item_id: str, reaction: FeedReaction) -> FeedItem:
        await self._execute(
            """
            INSERT INTO feed_reactions (id, feed_item_id, user_id, user_name, type)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (feed_item_id, user_id) DO UPDATE SET
                type = EXCLUDED.type,
                user_name = EXCLUDED.user_name
            """,
            (reaction.id, item_id, reaction.user_id, reaction.user_name, reaction.type.value)
        )
        return await self.get_feed_item(item_id)

    async def delete_reaction(self, item_id: str, user_id: str) -> FeedItem:
        await self._execute(
            "DELETE FROM feed_reactions WHERE feed_item_id = %s AND user_id = %s", (item_id, user_id)
        )
        return await self.get_feed_item(item_id)

    async def add_comment(self, item_id: str, comment: FeedComment) -> FeedItem:
        await self._execute(
            """
            INSERT INTO feed_comments (id, feed_item_id, user_id, user_name, message, timestamp)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (comment.id, item_id, comment.user_id, comment.user_name, comment.message, comment.timestamp)
        )
        return await self.get_feed_item(item_id)

    # ==========================================
    # Notifications
    # ==========================================

    async def add_notification(self, notification: Notification) -> Notification:
        await self._execute(
            """
            INSERT INTO notifications (id, recipient_id, type, title, body, data, created_at, read)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                notification.id, notification.recipient_id, notification.type.value,
                notification.title, notification.body, Jsonb(notification.data),
                notification.created_at, notification.read,
            )
        )
        return notification

    async def list_notifications(self, recipient_id: str, limit: int) -> List[Notification]:
        rows = await self._fetchall(
            "SELECT * FROM notifications WHERE recipient_id = %s ORDER BY created_at DESC LIMIT %s",
            (recipient_id, limit)
        )
        return [Notification(**row) for row in rows]

    async def mark_notification_read(self, recipient_id: str, notification_id: str) -> bool:
        updated = await self._execute(
            "UPDATE notifications SET read = TRUE WHERE id = %s AND recipient_id = %s",
            (notification_id, recipient_id)
        )
        return updated > 0
