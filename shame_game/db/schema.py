"""PostgreSQL schema, applied idempotently on startup"""
import logging

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        display_name TEXT NOT NULL,
        sleep_goal TEXT NOT NULL DEFAULT '7:00 AM',
        bedtime_goal TEXT NOT NULL DEFAULT '11:00 PM',
        profile_image_url TEXT,
        fcm_token TEXT,
        timezone TEXT NOT NULL DEFAULT 'UTC',
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        total_score INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        last_wake_up_date DATE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TIMESTAMPTZ NOT NULL,
        expires_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pending_challenges (
        user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
        operand1 INTEGER NOT NULL,
        operand2 INTEGER NOT NULL,
        operation TEXT NOT NULL,
        correct_answer INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS wake_up_logs (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        timestamp TIMESTAMPTZ NOT NULL,
        log_date DATE NOT NULL,
        goal_time TEXT NOT NULL,
        actual_time TEXT NOT NULL,
        math_problem_correct BOOLEAN NOT NULL DEFAULT TRUE,
        shame_count INTEGER NOT NULL DEFAULT 0,
        UNIQUE (user_id, log_date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_scores (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        date DATE NOT NULL,
        score INTEGER NOT NULL CHECK (score >= 0 AND score <= 100),
        wake_up_points INTEGER NOT NULL,
        consistency_points INTEGER NOT NULL,
        sleep_duration_points INTEGER NOT NULL,
        shame_deductions INTEGER NOT NULL DEFAULT 0,
        shame_count INTEGER NOT NULL DEFAULT 0,
        UNIQUE (user_id, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS shame_events (
        id TEXT PRIMARY KEY,
        target_user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        shaming_user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        timestamp TIMESTAMPTZ NOT NULL,
        event_date DATE NOT NULL,
        points_deducted INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_shame_events_target_date ON shame_events (target_user_id, event_date)",
    """
    CREATE TABLE IF NOT EXISTS friend_requests (
        id TEXT PRIMARY KEY,
        from_user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        to_user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        from_user_display_name TEXT NOT NULL,
        to_user_display_name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        timestamp TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS friendships (
        id TEXT PRIMARY KEY,
        user_id_1 TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        user_id_2 TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        created_at TIMESTAMPTZ NOT NULL,
        CHECK (user_id_1 < user_id_2),
        UNIQUE (user_id_1, user_id_2)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feed_items (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        user_name TEXT NOT NULL,
        type TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL,
        related_user_id TEXT,
        shame_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_feed_items_user_time ON feed_items (user_id, timestamp DESC)",
    """
    CREATE TABLE IF NOT EXISTS feed_reactions (
        id TEXT PRIMARY KEY,
        feed_item_id TEXT NOT NULL REFERENCES feed_items(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        user_name TEXT NOT NULL,
        type TEXT NOT NULL,
        position BIGSERIAL,
        UNIQUE (feed_item_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS feed_comments (
        id TEXT PRIMARY KEY,
        feed_item_id TEXT NOT NULL REFERENCES feed_items(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        user_name TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        recipient_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        body TEXT NOT NULL,
        data JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL,
        read BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
]


async def apply_schema(database) -> None:
    """Create tables and indexes that do not exist yet"""
    async with database.connection() as conn:
        async with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                await cur.execute(statement)
            await conn.commit()
    logger.info(f"Schema applied ({len(SCHEMA_STATEMENTS)} statements)")
