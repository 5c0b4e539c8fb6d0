"""
Wake-up game rules

- Math challenge generation and answer checking
- Daily score computation
- Wake-up streak tracking
"""

from shame_game.gamification.challenge import generate_math_problem, make_problem, check_answer
from shame_game.gamification.scoring import compute_daily_score, apply_shame_penalty, ScoreBreakdown
from shame_game.gamification.streak_system import update_streak, StreakUpdate

__all__ = [
    "generate_math_problem",
    "make_problem",
    "check_answer",
    "compute_daily_score",
    "apply_shame_penalty",
    "ScoreBreakdown",
    "update_streak",
    "StreakUpdate",
]
