"""Wake-up challenge and scoring models"""
from enum import Enum
import datetime as dt
from datetime import date, datetime
from pydantic import BaseModel, Field, computed_field


class MathOperation(str, Enum):
    """Challenge operations"""
    ADDITION = "+"
    SUBTRACTION = "-"

    @property
    def symbol(self) -> str:
        return self.value


class MathProblem(BaseModel):
    """Wake-up challenge; subtraction operands are ordered so the answer is non-negative"""
    operand1: int
    operand2: int
    operation: MathOperation
    correct_answer: int

    @computed_field
    @property
    def question_text(self) -> str:
        return f"{self.operand1} {self.operation.symbol} {self.operand2} = ?"


class WakeUpLog(BaseModel):
    """One verified wake-up; at most one per user per calendar day"""
    id: str
    user_id: str
    timestamp: datetime
    log_date: date  # calendar day in the user's timezone
    goal_time: str
    actual_time: str
    math_problem_correct: bool = True
    shame_count: int = Field(default=0, ge=0)


class DailyScore(BaseModel):
    """Composite score for one user-day"""
    id: str
    user_id: str
    date: dt.date
    score: int = Field(ge=0, le=100)
    wake_up_points: int = Field(ge=0)
    consistency_points: int = Field(ge=0)
    sleep_duration_points: int = Field(ge=0)
    shame_deductions: int = Field(default=0, ge=0)  # points removed by shaming
    shame_count: int = Field(default=0, ge=0)


class ShameEvent(BaseModel):
    """A friend publicly shaming a user"""
    id: str
    target_user_id: str
    shaming_user_id: str
    timestamp: datetime
    event_date: date  # calendar day in the target's timezone
    points_deducted: int = Field(default=0, ge=0)
