"""
Wake-up Streak Tracking

Logic:
- First wake-up: streak starts at 1
- Same day as the last wake-up: no change
- Day after the last wake-up: streak continues
- Any larger gap: streak resets to 1
- longest streak follows the current streak upwards

Milestones (7, 14, 30, 100 days) are announced on the feed.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional
import logging

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (7, 14, 30, 100)


@dataclass(frozen=True)
class StreakUpdate:
    """Result of recording a wake-up against the streak"""
    current_streak: int
    longest_streak: int
    old_streak: int
    milestone: Optional[int]
    message: str

    @property
    def milestone_reached(self) -> bool:
        return self.milestone is not None


def update_streak(
    current_streak: int,
    longest_streak: int,
    last_activity_date: Optional[date],
    activity_date: date
) -> StreakUpdate:
    """
    Advance a streak for a wake-up on activity_date

    Args:
        current_streak: Streak before this wake-up
        longest_streak: Best streak so far
        last_activity_date: Day of the previous wake-up (None if never)
        activity_date: Day of this wake-up

    Returns:
        StreakUpdate with the new counters
    """
    old_current = current_streak

    # If this is the first activity
    if last_activity_date is None:
        current = 1
        message = "Streak started! Day 1 🎉"

    # If activity is on the same day
    elif last_activity_date == activity_date:
        current = max(current_streak, 1)
        message = f"Streak continues! Day {current} 🔥"

    # If activity is the next day (continuing streak)
    elif last_activity_date == activity_date - timedelta(days=1):
        current = current_streak + 1
        message = f"Streak continues! Day {current} 🔥"

    # If there's a gap
    else:
        gap_days = (activity_date - last_activity_date).days
        current = 1
        message = f"Streak reset. Previous: {old_current} days. Starting fresh! Day 1 💪"
        logger.info(f"Streak broken: was {old_current}, gap was {gap_days} days")

    best = max(longest_streak, current)

    milestone = None
    if current != old_current and current in STREAK_MILESTONES:
        milestone = current
        message += f"\n🏆 {milestone}-day streak!"

    return StreakUpdate(
        current_streak=current,
        longest_streak=best,
        old_streak=old_current,
        milestone=milestone,
        message=message,
    )
