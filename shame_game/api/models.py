"""Pydantic models for API request/response validation"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import date, datetime

from shame_game.models import (
    DailyScore,
    FriendshipStatus,
    MathOperation,
    MathProblem,
    ReactionType,
    User,
    WakeUpLog,
)


# Auth

class SignUpRequest(BaseModel):
    """Request to create an account"""
    email: str = Field(..., description="Email address (case-insensitive)")
    password: str = Field(..., description="At least 6 characters")
    display_name: str = Field(..., description="Name shown to friends")


class SignInRequest(BaseModel):
    """Request to sign in"""
    email: str
    password: str


class ProfileResponse(BaseModel):
    """The signed-in user's own profile"""
    id: str
    email: str
    display_name: str
    sleep_goal: str
    bedtime_goal: str
    profile_image_url: Optional[str] = None
    timezone: str
    created_at: datetime
    total_score: int
    current_streak: int
    longest_streak: int
    last_wake_up_date: Optional[date] = None
    push_enabled: bool = Field(False, description="Whether a device token is registered")

    @classmethod
    def from_user(cls, user: User) -> "ProfileResponse":
        return cls(
            **user.model_dump(exclude={"fcm_token"}),
            push_enabled=bool(user.fcm_token),
        )


class AuthResponse(BaseModel):
    """Session issued on sign-up or sign-in"""
    token: str = Field(..., description="Bearer token for the Authorization header")
    expires_at: datetime
    user: ProfileResponse


class ProfileUpdateRequest(BaseModel):
    """Profile fields to change; omitted fields are left alone"""
    display_name: Optional[str] = None
    sleep_goal: Optional[str] = Field(None, description="Wake-up goal, e.g. '6:30 AM'")
    bedtime_goal: Optional[str] = Field(None, description="Bedtime goal, e.g. '10:30 PM'")
    timezone: Optional[str] = Field(None, description="IANA timezone, e.g. 'Europe/Berlin'")
    profile_image_url: Optional[str] = None


class PushTokenRequest(BaseModel):
    """Device token for push notifications"""
    token: str


# Wake-up

class ChallengeResponse(BaseModel):
    """A math challenge, without its answer"""
    operand1: int
    operand2: int
    operation: MathOperation
    question_text: str

    @classmethod
    def from_problem(cls, problem: MathProblem) -> "ChallengeResponse":
        return cls(
            operand1=problem.operand1,
            operand2=problem.operand2,
            operation=problem.operation,
            question_text=problem.question_text,
        )


class AnswerRequest(BaseModel):
    """Answer to the pending challenge"""
    answer: int


class AnswerResponse(BaseModel):
    """Result of an answer submission"""
    correct: bool
    message: str
    wake_up_log: Optional[WakeUpLog] = None
    daily_score: Optional[DailyScore] = None
    current_streak: Optional[int] = None
    longest_streak: Optional[int] = None
    milestone: Optional[int] = None


class TodayResponse(BaseModel):
    """Wake-up state for the user's current day"""
    date: date
    goal_time: str
    can_wake_up: bool
    wake_up_log: Optional[WakeUpLog] = None
    daily_score: Optional[DailyScore] = None
    challenge: Optional[ChallengeResponse] = None
    shame_count: int = 0


# Friends

class PublicUserResponse(BaseModel):
    """What other users can see about a user"""
    id: str
    display_name: str
    profile_image_url: Optional[str] = None
    sleep_goal: str
    total_score: int
    current_streak: int

    @classmethod
    def from_user(cls, user: User) -> "PublicUserResponse":
        return cls(
            id=user.id,
            display_name=user.display_name,
            profile_image_url=user.profile_image_url,
            sleep_goal=user.sleep_goal,
            total_score=user.total_score,
            current_streak=user.current_streak,
        )


class UserSearchResponse(BaseModel):
    """Search hit with its relationship to the searcher"""
    user: PublicUserResponse
    status: FriendshipStatus


class UserStatusResponse(BaseModel):
    """Relationship and shameability of another user"""
    user: PublicUserResponse
    status: FriendshipStatus
    can_be_shamed: bool


class FriendRequestCreate(BaseModel):
    """Request to befriend a user"""
    to_user_id: str


# Feed

class ReactionRequest(BaseModel):
    type: ReactionType


class CommentRequest(BaseModel):
    message: str = Field(..., description="1-500 characters after trimming")


class PresetCommentsResponse(BaseModel):
    comments: List[str]


# Generic

class MessageResponse(BaseModel):
    """Plain acknowledgement"""
    message: str


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    storage: str = Field(..., description="Storage backend status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure"""
    error: str = Field(..., description="Exception class name")
    message: str = Field(..., description="Developer-facing message")
    user_message: str = Field(..., description="Message safe to show users")
    request_id: str
    timestamp: datetime
