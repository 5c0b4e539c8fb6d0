"""User-related Pydantic models"""
from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel, Field


class User(BaseModel):
    """Account profile and running score totals"""
    id: str
    email: str
    display_name: str
    sleep_goal: str = "7:00 AM"  # wake-up goal, time of day
    bedtime_goal: str = "11:00 PM"
    profile_image_url: Optional[str] = None
    fcm_token: Optional[str] = None
    timezone: str = "UTC"  # IANA timezone (e.g., "America/New_York")
    created_at: datetime
    total_score: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_wake_up_date: Optional[date] = None


class Session(BaseModel):
    """Bearer session issued on sign-up/sign-in"""
    token: str
    user_id: str
    created_at: datetime
    expires_at: datetime
