"""API routes for the Shame Game backend"""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query, Request, status

from shame_game.api.models import (
    SignUpRequest, SignInRequest, AuthResponse,
    ProfileResponse, ProfileUpdateRequest, PushTokenRequest,
    ChallengeResponse, AnswerRequest, AnswerResponse, TodayResponse,
    PublicUserResponse, UserSearchResponse, UserStatusResponse, FriendRequestCreate,
    ReactionRequest, CommentRequest, PresetCommentsResponse,
    MessageResponse, HealthCheckResponse
)
from shame_game.api.auth import get_current_user, get_session_token
from shame_game.api.middleware import limiter
from shame_game.config import RATE_LIMIT_DEFAULT
from shame_game.models import DailyScore, FeedItem, FriendRequest, Notification, User, WakeUpLog
from shame_game.services.container import ServiceContainer, get_container
from shame_game.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

router = APIRouter()


# ==========================================
# Auth & profile
# ==========================================

@router.post("/api/v1/auth/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def sign_up(
    request: Request,
    body: SignUpRequest,
    container: ServiceContainer = Depends(get_container)
):
    """Create an account and return its first session (Rate limit: 10/minute)"""
    user, session = await container.auth_service.sign_up(body.email, body.password, body.display_name)
    return AuthResponse(token=session.token, expires_at=session.expires_at, user=ProfileResponse.from_user(user))


@router.post("/api/v1/auth/signin", response_model=AuthResponse)
@limiter.limit("10/minute")
async def sign_in(
    request: Request,
    body: SignInRequest,
    container: ServiceContainer = Depends(get_container)
):
    """Exchange email and password for a session (Rate limit: 10/minute)"""
    user, session = await container.auth_service.sign_in(body.email, body.password)
    return AuthResponse(token=session.token, expires_at=session.expires_at, user=ProfileResponse.from_user(user))


@router.post("/api/v1/auth/signout", response_model=MessageResponse)
async def sign_out(
    token: str = Depends(get_session_token),
    container: ServiceContainer = Depends(get_container)
):
    """End the current session"""
    await container.auth_service.sign_out(token)
    return MessageResponse(message="Signed out")


@router.get("/api/v1/me", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user)):
    """The signed-in user's profile and totals"""
    return ProfileResponse.from_user(user)


@router.patch("/api/v1/me", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Update display name, goals, timezone or picture"""
    updated = await container.auth_service.update_profile(user.id, **body.model_dump(exclude_unset=True))
    return ProfileResponse.from_user(updated)


@router.post("/api/v1/me/push-token", response_model=MessageResponse)
async def register_push_token(
    body: PushTokenRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Register the device token used for push notifications"""
    await container.notification_service.register_push_token(user.id, body.token)
    return MessageResponse(message="Push token registered")


# ==========================================
# Wake-up challenge
# ==========================================

@router.post("/api/v1/wakeup/challenge", response_model=ChallengeResponse)
async def generate_challenge(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Issue a math challenge; replaces any pending one"""
    problem = await container.wakeup_service.generate_challenge(user.id)
    return ChallengeResponse.from_problem(problem)


@router.post("/api/v1/wakeup/answer", response_model=AnswerResponse)
@limiter.limit("30/minute")
async def submit_answer(
    request: Request,
    body: AnswerRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """
    Answer the pending challenge (Rate limit: 30/minute)

    A wrong answer returns correct=false and the same challenge stays open.
    """
    result = await container.wakeup_service.submit_answer(user.id, body.answer)
    return AnswerResponse(
        correct=result.correct,
        message=result.message,
        wake_up_log=result.wake_up_log,
        daily_score=result.daily_score,
        current_streak=result.streak.current_streak if result.streak else None,
        longest_streak=result.streak.longest_streak if result.streak else None,
        milestone=result.streak.milestone if result.streak else None,
    )


@router.get("/api/v1/wakeup/today", response_model=TodayResponse)
async def get_today(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Today's wake-up log, score and pending challenge"""
    today = await container.wakeup_service.get_today(user.id)
    return TodayResponse(
        date=today.date,
        goal_time=today.goal_time,
        can_wake_up=today.can_wake_up,
        wake_up_log=today.wake_up_log,
        daily_score=today.daily_score,
        challenge=ChallengeResponse.from_problem(today.pending_challenge) if today.pending_challenge else None,
        shame_count=today.shame_count,
    )


@router.get("/api/v1/wakeup/recent", response_model=List[WakeUpLog])
async def get_recent_wake_ups(
    limit: int = Query(5, ge=1, le=30),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Most recent wake-ups, newest first"""
    return await container.wakeup_service.get_recent_wake_ups(user.id, limit)


@router.get("/api/v1/scores/weekly", response_model=List[DailyScore])
async def get_weekly_scores(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Last 7 daily scores, newest first"""
    return await container.wakeup_service.get_weekly_scores(user.id)


@router.get("/api/v1/scores/monthly", response_model=List[DailyScore])
async def get_monthly_scores(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Last 30 daily scores, newest first"""
    return await container.wakeup_service.get_monthly_scores(user.id)


# ==========================================
# Users & friends
# ==========================================

@router.get("/api/v1/users/search", response_model=List[UserSearchResponse])
@limiter.limit(RATE_LIMIT_DEFAULT)
async def search_users(
    request: Request,
    q: str = Query("", description="Name or email fragment"),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Find people to befriend (excludes yourself and existing friends)"""
    results = await container.friends_service.search(user.id, q)
    return [
        UserSearchResponse(user=PublicUserResponse.from_user(result.user), status=result.status)
        for result in results
    ]


@router.get("/api/v1/users/{user_id}/status", response_model=UserStatusResponse)
async def get_user_status(
    user_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Friendship status with another user and whether they can be shamed right now"""
    other = await container.auth_service.get_user(user_id)
    friendship = await container.friends_service.get_friendship_status(user.id, other.id)
    return UserStatusResponse(
        user=PublicUserResponse.from_user(other),
        status=friendship,
        can_be_shamed=await container.wakeup_service.can_be_shamed(other),
    )


@router.get("/api/v1/friends", response_model=List[PublicUserResponse])
async def list_friends(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Friends sorted by display name"""
    friends = await container.friends_service.list_friends(user.id)
    return [PublicUserResponse.from_user(friend) for friend in friends]


@router.get("/api/v1/friends/shameable", response_model=List[PublicUserResponse])
async def list_shameable_friends(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Friends past their wake-up goal who have not woken up yet"""
    friends = await container.friends_service.list_shameable_friends(user.id)
    return [PublicUserResponse.from_user(friend) for friend in friends]


@router.get("/api/v1/friends/requests", response_model=List[FriendRequest])
async def list_incoming_requests(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Pending requests addressed to you, newest first"""
    return await container.friends_service.list_pending(user.id)


@router.get("/api/v1/friends/requests/sent", response_model=List[FriendRequest])
async def list_sent_requests(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Pending requests you sent, newest first"""
    return await container.friends_service.list_sent(user.id)


@router.post("/api/v1/friends/requests", response_model=FriendRequest, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def send_friend_request(
    request: Request,
    body: FriendRequestCreate,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Send a friend request"""
    return await container.friends_service.send_request(user.id, body.to_user_id)


@router.post("/api/v1/friends/requests/{request_id}/accept", response_model=MessageResponse)
async def accept_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Accept a request addressed to you"""
    await container.friends_service.accept_request(request_id, user.id)
    return MessageResponse(message="Friend request accepted")


@router.post("/api/v1/friends/requests/{request_id}/reject", response_model=FriendRequest)
async def reject_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Reject a request addressed to you"""
    return await container.friends_service.reject_request(request_id, user.id)


@router.delete("/api/v1/friends/requests/{request_id}", response_model=MessageResponse)
async def cancel_friend_request(
    request_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Withdraw a request you sent"""
    await container.friends_service.cancel_request(request_id, user.id)
    return MessageResponse(message="Friend request cancelled")


@router.delete("/api/v1/friends/{friend_id}", response_model=MessageResponse)
async def remove_friend(
    friend_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Unfriend someone"""
    await container.friends_service.remove_friend(user.id, friend_id)
    return MessageResponse(message="Friend removed")


# ==========================================
# Feed & shaming
# ==========================================

@router.get("/api/v1/feed", response_model=List[FeedItem])
async def get_feed(
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Your and your friends' activity, newest first"""
    return await container.feed_service.get_feed(user.id, limit)


@router.get("/api/v1/feed/preset-comments", response_model=PresetCommentsResponse)
async def get_preset_comments(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Canned comment suggestions"""
    return PresetCommentsResponse(comments=container.feed_service.preset_comments())


@router.post("/api/v1/feed/{item_id}/reactions", response_model=FeedItem)
async def react_to_item(
    item_id: str,
    body: ReactionRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """React to a feed item; replaces your previous reaction"""
    return await container.feed_service.react(item_id, user.id, body.type)


@router.delete("/api/v1/feed/{item_id}/reactions", response_model=FeedItem)
async def remove_reaction(
    item_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Remove your reaction from a feed item"""
    return await container.feed_service.remove_reaction(item_id, user.id)


@router.post("/api/v1/feed/{item_id}/comments", response_model=FeedItem, status_code=status.HTTP_201_CREATED)
async def comment_on_item(
    item_id: str,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Comment on a feed item"""
    return await container.feed_service.comment(item_id, user.id, body.message)


@router.post("/api/v1/shame/{user_id}", response_model=FeedItem, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def shame_friend(
    request: Request,
    user_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Publicly shame a friend who overslept"""
    return await container.feed_service.shame(user.id, user_id)


# ==========================================
# Notifications
# ==========================================

@router.get("/api/v1/notifications", response_model=List[Notification])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Notification inbox, newest first"""
    return await container.notification_service.list_notifications(user.id, limit)


@router.post("/api/v1/notifications/{notification_id}/read", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Mark a notification as read"""
    await container.notification_service.mark_read(user.id, notification_id)
    return MessageResponse(message="Notification marked as read")


@router.post("/api/v1/notifications/shame-opportunities", response_model=List[PublicUserResponse])
async def send_shame_opportunities(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container)
):
    """Get notified about friends who are still asleep past their goal"""
    oversleepers = await container.friends_service.send_shame_opportunities(user.id)
    return [PublicUserResponse.from_user(friend) for friend in oversleepers]


# ==========================================
# Health
# ==========================================

@router.get("/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    container: ServiceContainer = Depends(get_container)
):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    try:
        storage_ok = await container.store.ping()
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        storage_ok = False

    storage_status = "connected" if storage_ok else "disconnected"
    return HealthCheckResponse(
        status="healthy" if storage_ok else "degraded",
        storage=storage_status,
        timestamp=now_utc()
    )
