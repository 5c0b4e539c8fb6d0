"""
Daily score computation

score = wake_up_points + consistency_points + sleep_duration_points - shame deductions

- wake_up_points (0-50): full marks at or before the goal time, then one
  point lost per started 2 minutes late
- consistency_points (0-30): 3 per streak day, streak capped at 10 days
- sleep_duration_points: flat 20
- shame: a fixed penalty per shame event, total floored at zero

The components sum to at most 100, so every score lies in [0, 100].
"""

import math
from dataclasses import dataclass
from datetime import datetime

MAX_WAKE_UP_POINTS = 50
MINUTES_PER_LATE_POINT = 2
CONSISTENCY_POINTS_PER_DAY = 3
CONSISTENCY_STREAK_CAP = 10
SLEEP_DURATION_POINTS = 20
MAX_SCORE = MAX_WAKE_UP_POINTS + CONSISTENCY_POINTS_PER_DAY * CONSISTENCY_STREAK_CAP + SLEEP_DURATION_POINTS


@dataclass(frozen=True)
class ScoreBreakdown:
    """Components of one day's score"""
    wake_up_points: int
    consistency_points: int
    sleep_duration_points: int
    shame_deductions: int
    shame_count: int

    @property
    def score(self) -> int:
        raw = self.wake_up_points + self.consistency_points + self.sleep_duration_points
        return max(0, raw - self.shame_deductions)


def wake_up_points(woke_at: datetime, goal: datetime) -> int:
    """Punctuality points; both datetimes must be aware"""
    minutes_late = (woke_at - goal).total_seconds() / 60
    if minutes_late <= 0:
        return MAX_WAKE_UP_POINTS
    lost = math.ceil(minutes_late / MINUTES_PER_LATE_POINT)
    return max(0, MAX_WAKE_UP_POINTS - lost)


def consistency_points(streak_days: int) -> int:
    """Bonus for consecutive wake-ups"""
    return CONSISTENCY_POINTS_PER_DAY * min(max(streak_days, 0), CONSISTENCY_STREAK_CAP)


def compute_daily_score(
    woke_at: datetime,
    goal: datetime,
    streak_days: int,
    shame_count: int = 0,
    shame_penalty: int = 5
) -> ScoreBreakdown:
    """
    Deterministic score for one wake-up

    Args:
        woke_at: When the challenge was solved
        goal: Goal wake-up time on the same local day
        streak_days: Current streak including today
        shame_count: Shame events already received today
        shame_penalty: Points removed per shame event

    Returns:
        ScoreBreakdown whose .score is within [0, 100]
    """
    return ScoreBreakdown(
        wake_up_points=wake_up_points(woke_at, goal),
        consistency_points=consistency_points(streak_days),
        sleep_duration_points=SLEEP_DURATION_POINTS,
        shame_deductions=max(shame_count, 0) * shame_penalty,
        shame_count=max(shame_count, 0),
    )


def apply_shame_penalty(current_score: int, penalty: int) -> int:
    """Score after one shame event, floored at zero"""
    return max(0, current_score - penalty)
