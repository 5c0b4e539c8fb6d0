"""
WakeUpService - Wake-up Challenge & Scoring Business Logic

Flow:
1. Alarm rings, client asks for a challenge (generate_challenge)
2. User submits an answer (submit_answer)
3. On a correct answer the wake-up is logged, the streak advances, the
   day's score is stored, friends are notified and the feed gets an item

Friends can shame a user who is still asleep past their goal (apply_shame),
which costs the target points on today's score.
"""

import asyncio
import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from shame_game.config import CHALLENGE_MAX_OPERAND, CHALLENGE_MIN_OPERAND, SHAME_PENALTY
from shame_game.db.store import Store
from shame_game.exceptions import ConflictError, RecordNotFoundError
from shame_game.gamification import (
    StreakUpdate,
    apply_shame_penalty,
    check_answer,
    compute_daily_score,
    generate_math_problem,
    update_streak,
)
from shame_game.models import (
    DailyScore,
    FeedItem,
    FeedItemType,
    MathProblem,
    ShameEvent,
    User,
    WakeUpLog,
)
from shame_game.observability.metrics import (
    answers_submitted_total,
    challenges_generated_total,
    daily_score,
    wake_ups_total,
)
from shame_game.utils.datetime_helpers import (
    combine_local,
    format_time_of_day,
    local_date,
    now_utc,
    parse_time_of_day,
    to_user_timezone,
)

logger = logging.getLogger(__name__)

WEEKLY_WINDOW = 7
MONTHLY_WINDOW = 30


@dataclass
class WakeUpResult:
    """Outcome of an answer submission"""
    correct: bool
    message: str
    wake_up_log: Optional[WakeUpLog] = None
    daily_score: Optional[DailyScore] = None
    streak: Optional[StreakUpdate] = None
    feed_items: List[FeedItem] = field(default_factory=list)


@dataclass
class TodayStatus:
    """A user's wake-up state for their current calendar day"""
    date: date
    goal_time: str
    wake_up_log: Optional[WakeUpLog]
    daily_score: Optional[DailyScore]
    pending_challenge: Optional[MathProblem]
    shame_count: int

    @property
    def can_wake_up(self) -> bool:
        return self.wake_up_log is None


class WakeUpService:
    """
    Service for the wake-up challenge and daily scoring.

    Responsibilities:
    - Generating and checking math challenges
    - Logging verified wake-ups (one per user per local day)
    - Streak updates and daily score computation
    - Shame deductions
    - Score and wake-up history queries
    """

    def __init__(
        self,
        store: Store,
        notification_service,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None,
        min_operand: int = CHALLENGE_MIN_OPERAND,
        max_operand: int = CHALLENGE_MAX_OPERAND,
        shame_penalty: int = SHAME_PENALTY
    ):
        """
        Initialize WakeUpService.

        Args:
            store: Persistence backend
            notification_service: NotificationService for friend broadcasts
            clock: Source of "now" (UTC, aware)
            rng: Random source for challenges
            min_operand: Smallest challenge operand
            max_operand: Largest challenge operand
            shame_penalty: Points removed per shame event
        """
        self.store = store
        self.notifications = notification_service
        self.clock = clock
        self.rng = rng or random.Random()
        self.min_operand = min_operand
        self.max_operand = max_operand
        self.shame_penalty = shame_penalty
        # Serializes writes per user (answer submission and shaming)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _require_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found", record_type="User", record_id=user_id)
        return user

    def _today(self, user: User) -> date:
        return local_date(self.clock(), user.timezone)

    def _goal_datetime(self, user: User, day: date) -> datetime:
        return combine_local(day, parse_time_of_day(user.sleep_goal), user.timezone)

    async def generate_challenge(self, user_id: str) -> MathProblem:
        """
        Issue a new challenge, replacing any pending one.

        Raises:
            ConflictError: User already woke up today
        """
        user = await self._require_user(user_id)
        today = self._today(user)

        if await self.store.get_wake_up_log(user_id, today):
            raise ConflictError(
                "Already woke up today",
                reason="already_logged_today",
                user_id=user_id,
                operation="generate_challenge",
            )

        problem = generate_math_problem(self.min_operand, self.max_operand, self.rng)
        await self.store.set_pending_challenge(user_id, problem)

        challenges_generated_total.labels(operation=problem.operation.name.lower()).inc()
        logger.info(f"Issued challenge to {user_id}: {problem.question_text}")
        return problem

    async def submit_answer(self, user_id: str, value: int) -> WakeUpResult:
        """
        Check an answer and, if correct, record the wake-up.

        A wrong answer (or no pending challenge) returns correct=False and keeps
        the challenge pending so the user can retry.

        Raises:
            ConflictError: User already woke up today
        """
        async with self._locks[user_id]:
            user = await self._require_user(user_id)
            now = self.clock()
            today = local_date(now, user.timezone)

            if await self.store.get_wake_up_log(user_id, today):
                raise ConflictError(
                    "Already woke up today",
                    reason="already_logged_today",
                    user_id=user_id,
                    operation="submit_answer",
                )

            problem = await self.store.get_pending_challenge(user_id)
            if problem is None:
                answers_submitted_total.labels(result="no_challenge").inc()
                return WakeUpResult(correct=False, message="No challenge pending. Request a new one.")

            if not check_answer(problem, value):
                answers_submitted_total.labels(result="incorrect").inc()
                logger.info(f"Wrong answer from {user_id} for {problem.question_text}")
                return WakeUpResult(correct=False, message="Wrong answer. Try again!")

            answers_submitted_total.labels(result="correct").inc()

            # Shames received before waking still count against today
            shame_count = await self.store.count_shame_events(user_id, today)
            actual_time = format_time_of_day(to_user_timezone(now, user.timezone))

            log = await self.store.add_wake_up_log(WakeUpLog(
                id=str(uuid4()),
                user_id=user_id,
                timestamp=now,
                log_date=today,
                goal_time=user.sleep_goal,
                actual_time=actual_time,
                math_problem_correct=True,
                shame_count=shame_count,
            ))
            await self.store.clear_pending_challenge(user_id)

            streak = update_streak(user.current_streak, user.longest_streak, user.last_wake_up_date, today)

            breakdown = compute_daily_score(
                woke_at=now,
                goal=self._goal_datetime(user, today),
                streak_days=streak.current_streak,
                shame_count=shame_count,
                shame_penalty=self.shame_penalty,
            )
            score = await self.store.save_daily_score(DailyScore(
                id=str(uuid4()),
                user_id=user_id,
                date=today,
                score=breakdown.score,
                wake_up_points=breakdown.wake_up_points,
                consistency_points=breakdown.consistency_points,
                sleep_duration_points=breakdown.sleep_duration_points,
                shame_deductions=breakdown.shame_deductions,
                shame_count=breakdown.shame_count,
            ))

            # targeted write, so a concurrent profile edit is never overwritten
            user = await self.store.record_wake_up_totals(
                user_id,
                points=score.score,
                current_streak=streak.current_streak,
                longest_streak=streak.longest_streak,
                last_wake_up_date=today,
            )

            feed_items = [await self.store.add_feed_item(FeedItem(
                id=str(uuid4()),
                user_id=user_id,
                user_name=user.display_name,
                type=FeedItemType.WAKE_UP,
                message=f"{user.display_name} woke up at {actual_time} after solving MATH! 🧠",
                timestamp=now,
            ))]

            if streak.milestone_reached:
                feed_items.append(await self.store.add_feed_item(FeedItem(
                    id=str(uuid4()),
                    user_id=user_id,
                    user_name=user.display_name,
                    type=FeedItemType.ACHIEVEMENT,
                    message=f"{user.display_name} hit a {streak.milestone}-day wake-up streak! 🏆",
                    timestamp=now,
                )))

            wake_ups_total.inc()
            daily_score.observe(score.score)
            logger.info(
                f"User {user_id} woke up at {actual_time} (goal {user.sleep_goal}), "
                f"score {score.score}, streak {streak.current_streak}"
            )

        await self.notifications.notify_wake_up(user, actual_time)

        return WakeUpResult(
            correct=True,
            message=streak.message,
            wake_up_log=log,
            daily_score=score,
            streak=streak,
            feed_items=feed_items,
        )

    async def apply_shame(self, target_user_id: str, shaming_user_id: str) -> ShameEvent:
        """
        Record a shame event and deduct points from today's score if one exists.

        Returns:
            ShameEvent with the points actually removed
        """
        async with self._locks[target_user_id]:
            target = await self._require_user(target_user_id)
            now = self.clock()
            today = local_date(now, target.timezone)
            deducted = 0

            score = await self.store.get_daily_score(target_user_id, today)
            if score:
                new_score = apply_shame_penalty(score.score, self.shame_penalty)
                deducted = score.score - new_score
                score.score = new_score
                score.shame_deductions += self.shame_penalty
                score.shame_count += 1
                await self.store.save_daily_score(score)

                if deducted:
                    await self.store.deduct_total_score(target_user_id, deducted)

            log = await self.store.get_wake_up_log(target_user_id, today)
            if log:
                log.shame_count += 1
                await self.store.update_wake_up_log(log)

            event = await self.store.add_shame_event(ShameEvent(
                id=str(uuid4()),
                target_user_id=target_user_id,
                shaming_user_id=shaming_user_id,
                timestamp=now,
                event_date=today,
                points_deducted=deducted,
            ))

        logger.info(f"{shaming_user_id} shamed {target_user_id}: -{deducted} points")
        return event

    async def get_today(self, user_id: str) -> TodayStatus:
        """Today's log, score and pending challenge"""
        user = await self._require_user(user_id)
        today = self._today(user)
        return TodayStatus(
            date=today,
            goal_time=user.sleep_goal,
            wake_up_log=await self.store.get_wake_up_log(user_id, today),
            daily_score=await self.store.get_daily_score(user_id, today),
            pending_challenge=await self.store.get_pending_challenge(user_id),
            shame_count=await self.store.count_shame_events(user_id, today),
        )

    async def get_recent_wake_ups(self, user_id: str, limit: int = 5) -> List[WakeUpLog]:
        await self._require_user(user_id)
        return await self.store.list_wake_up_logs(user_id, limit)

    async def get_weekly_scores(self, user_id: str) -> List[DailyScore]:
        await self._require_user(user_id)
        return await self.store.list_daily_scores(user_id, WEEKLY_WINDOW)

    async def get_monthly_scores(self, user_id: str) -> List[DailyScore]:
        await self._require_user(user_id)
        return await self.store.list_daily_scores(user_id, MONTHLY_WINDOW)

    async def can_be_shamed(self, user: User) -> bool:
        """True once the user's goal has passed today without a wake-up"""
        now = self.clock()
        today = local_date(now, user.timezone)
        if now < self._goal_datetime(user, today):
            return False
        return await self.store.get_wake_up_log(user.id, today) is None
