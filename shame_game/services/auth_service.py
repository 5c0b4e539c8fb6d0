"""
AuthService - Accounts and Sessions

Email/password accounts with bcrypt hashes and opaque bearer session tokens.
Also owns profile edits (display name, goals, timezone).
"""

import asyncio
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

import bcrypt

from shame_game.config import BCRYPT_ROUNDS, SESSION_TTL_HOURS
from shame_game.db.store import Store
from shame_game.exceptions import AuthenticationError, RecordNotFoundError, ValidationError
from shame_game.models import Session, User
from shame_game.utils.datetime_helpers import (
    format_time_of_day,
    is_valid_timezone,
    local_date,
    now_utc,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit
MAX_DISPLAY_NAME_LENGTH = 50

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """bcrypt hash as text"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check against a stored bcrypt hash"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


class AuthService:
    """
    Service for accounts and authentication.

    Responsibilities:
    - Sign-up with unique (case-insensitive) email
    - Sign-in / sign-out with bearer session tokens
    - Resolving a token to the signed-in user
    - Profile updates with goal and timezone validation
    """

    def __init__(
        self,
        store: Store,
        clock: Callable[[], datetime] = now_utc,
        session_ttl_hours: int = SESSION_TTL_HOURS,
        bcrypt_rounds: int = BCRYPT_ROUNDS
    ):
        self.store = store
        self.clock = clock
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.bcrypt_rounds = bcrypt_rounds

    @staticmethod
    def _normalize_email(email: str) -> str:
        normalized = (email or "").strip().lower()
        if not _EMAIL_PATTERN.match(normalized):
            raise ValidationError("Email address is not valid", field="email", value=email)
        return normalized

    @staticmethod
    def _validate_display_name(display_name: str) -> str:
        name = (display_name or "").strip()
        if not name:
            raise ValidationError("Display name must not be empty", field="display_name", value=display_name)
        if len(name) > MAX_DISPLAY_NAME_LENGTH:
            raise ValidationError(
                f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters",
                field="display_name",
                value=display_name,
            )
        return name

    @staticmethod
    def _validate_password(password: str) -> None:
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
                field="password",
            )

    async def _open_session(self, user_id: str) -> Session:
        now = self.clock()
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        return await self.store.create_session(session)

    async def sign_up(self, email: str, password: str, display_name: str) -> Tuple[User, Session]:
        """
        Create an account and sign it in.

        Returns:
            (User, Session) for the new account

        Raises:
            ValidationError: Bad email, short password or empty name
            ConflictError: Email already registered
        """
        normalized = self._normalize_email(email)
        name = self._validate_display_name(display_name)
        self._validate_password(password)

        user = User(
            id=str(uuid4()),
            email=normalized,
            display_name=name,
            created_at=self.clock(),
        )
        # bcrypt is CPU-bound, so it runs off the event loop
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        # Store raises ConflictError for a duplicate email
        await self.store.create_user(user, password_hash)
        session = await self._open_session(user.id)

        logger.info(f"Signed up user {user.id}")
        return user, session

    async def sign_in(self, email: str, password: str) -> Tuple[User, Session]:
        """Exchange credentials for a fresh session"""
        normalized = (email or "").strip().lower()
        user = await self.store.get_user_by_email(normalized)
        password_hash = await self.store.get_password_hash(user.id) if user else None

        if user is None or password_hash is None:
            raise AuthenticationError("Invalid email or password", operation="sign_in")
        if not await asyncio.to_thread(verify_password, password or "", password_hash):
            raise AuthenticationError("Invalid email or password", operation="sign_in")

        session = await self._open_session(user.id)
        logger.info(f"Signed in user {user.id}")
        return user, session

    async def sign_out(self, token: str) -> bool:
        """End a session; returns False if it did not exist"""
        return await self.store.delete_session(token)

    async def authenticate(self, token: str) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            AuthenticationError: Unknown or expired token, or deleted user
        """
        if not token:
            raise AuthenticationError("Missing session token", operation="authenticate")

        session = await self.store.get_session(token)
        if session is None:
            raise AuthenticationError("Invalid session token", operation="authenticate")

        if session.expires_at <= self.clock():
            await self.store.delete_session(token)
            raise AuthenticationError("Session expired", user_id=session.user_id, operation="authenticate")

        user = await self.store.get_user(session.user_id)
        if user is None:
            raise AuthenticationError("Session user no longer exists", operation="authenticate")
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return user

    async def update_profile(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        sleep_goal: Optional[str] = None,
        bedtime_goal: Optional[str] = None,
        timezone: Optional[str] = None,
        profile_image_url: Optional[str] = None
    ) -> User:
        """
        Apply the given profile fields; None leaves a field unchanged.

        Goal times are normalized to the "7:00 AM" display form. Only the
        edited columns are written, so a wake-up or shame landing at the same
        time keeps its score and streak changes.

        Raises:
            ValidationError: Bad value, or a timezone change that would move an
                already-woken user onto a new local day
        """
        user = await self.get_user(user_id)
        fields: Dict[str, Any] = {}

        if display_name is not None:
            fields["display_name"] = self._validate_display_name(display_name)

        if sleep_goal is not None:
            fields["sleep_goal"] = self._normalize_goal(sleep_goal, "sleep_goal", user_id)

        if bedtime_goal is not None:
            fields["bedtime_goal"] = self._normalize_goal(bedtime_goal, "bedtime_goal", user_id)

        if timezone is not None:
            if not is_valid_timezone(timezone):
                raise ValidationError("Unknown timezone", field="timezone", value=timezone, user_id=user_id)
            if timezone != user.timezone:
                self._check_timezone_change(user, timezone)
            fields["timezone"] = timezone

        if profile_image_url is not None:
            fields["profile_image_url"] = profile_image_url.strip() or None

        user = await self.store.update_user_profile(user_id, fields)
        logger.info(f"Updated profile for {user_id}")
        return user

    def _check_timezone_change(self, user: User, timezone: str) -> None:
        # One wake-up per real day: after waking, the new zone must still be on that day
        if user.last_wake_up_date is None:
            return
        now = self.clock()
        if local_date(now, user.timezone) != user.last_wake_up_date:
            return
        if local_date(now, timezone) != user.last_wake_up_date:
            raise ValidationError(
                "Timezone cannot move you to another day after waking up; try again tomorrow",
                field="timezone",
                value=timezone,
                user_id=user.id,
            )

    @staticmethod
    def _normalize_goal(value: str, field: str, user_id: str) -> str:
        try:
            return format_time_of_day(parse_time_of_day(value))
        except ValueError as e:
            raise ValidationError(str(e), field=field, value=value, user_id=user_id) from e
