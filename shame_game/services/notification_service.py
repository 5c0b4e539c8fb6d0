"""
NotificationService - Fire-and-forget Notifications

Every notification is written to the recipient's in-app inbox and, when the
recipient registered a device token, pushed through a PushSender. Delivery
failures are logged and counted, never raised to the caller, and never retried.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

import google.auth.transport.requests
import httpx
from google.oauth2 import service_account

from shame_game.config import FCM_CREDENTIALS_FILE, FCM_ENDPOINT, FCM_PROJECT_ID
from shame_game.db.store import Store
from shame_game.exceptions import RecordNotFoundError, ValidationError, wrap_external_exception
from shame_game.models import FriendRequest, Notification, NotificationType, User
from shame_game.observability.metrics import notifications_total
from shame_game.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class PushSender(ABC):
    """Transport for device push notifications"""

    @abstractmethod
    async def send(self, token: str, title: str, body: str, data: Dict[str, Any]) -> None:
        """Deliver one push; raise on failure"""


class LoggingPushSender(PushSender):
    """Writes pushes to the log instead of delivering them"""

    async def send(self, token: str, title: str, body: str, data: Dict[str, Any]) -> None:
        logger.info(f"Push to {token[:10]}...: {title} - {body}")


class ServiceAccountTokenSource:
    """
    OAuth2 access tokens for FCM, minted from a Google service account.

    Tokens are cached by the credentials object and refreshed shortly before
    they expire. The refresh is a blocking HTTP call, so it runs in a thread.
    """

    def __init__(self, credentials):
        self.credentials = credentials
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(cls, credentials_file: str) -> "ServiceAccountTokenSource":
        credentials = service_account.Credentials.from_service_account_file(
            credentials_file, scopes=[FCM_SCOPE]
        )
        return cls(credentials)

    async def __call__(self) -> str:
        async with self._lock:
            if not self.credentials.valid:
                await asyncio.to_thread(self.credentials.refresh, google.auth.transport.requests.Request())
                logger.debug("Refreshed FCM access token")
            return self.credentials.token


class FcmPushSender(PushSender):
    """Firebase Cloud Messaging HTTP v1 sender"""

    def __init__(
        self,
        project_id: str,
        token_source: Callable[[], Awaitable[str]],
        endpoint: str = FCM_ENDPOINT,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = endpoint.format(project_id=project_id)
        self.token_source = token_source
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def build_message(token: str, title: str, body: str, data: Dict[str, Any]) -> Dict[str, Any]:
        # v1 requires every data value to be a string
        return {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "data": {key: str(value) for key, value in data.items()},
                "android": {"notification": {"sound": "default"}},
                "apns": {"payload": {"aps": {"sound": "default"}}},
            }
        }

    async def send(self, token: str, title: str, body: str, data: Dict[str, Any]) -> None:
        access_token = await self.token_source()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.url,
                json=self.build_message(token, title, body, data),
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()


def default_push_sender() -> PushSender:
    """FCM when a project and service account are configured, logging otherwise"""
    if FCM_PROJECT_ID and FCM_CREDENTIALS_FILE:
        return FcmPushSender(FCM_PROJECT_ID, ServiceAccountTokenSource.from_file(FCM_CREDENTIALS_FILE))
    return LoggingPushSender()


class NotificationService:
    """
    Service for user notifications.

    Responsibilities:
    - Wake-up broadcasts to friends
    - Shame alerts to the shamed user
    - Friend request / acceptance alerts
    - "Shame opportunity" nudges about oversleeping friends
    - Device token registration and the in-app inbox
    """

    def __init__(
        self,
        store: Store,
        push_sender: Optional[PushSender] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.store = store
        self.push_sender = push_sender or default_push_sender()
        self.clock = clock

    async def _dispatch(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[Notification]:
        """Store and push one notification; failures are swallowed"""
        try:
            notification = Notification(
                id=str(uuid4()),
                recipient_id=recipient_id,
                type=notification_type,
                title=title,
                body=body,
                data=data or {},
                created_at=self.clock(),
            )
            await self.store.add_notification(notification)

            recipient = await self.store.get_user(recipient_id)
            if recipient and recipient.fcm_token:
                try:
                    await self.push_sender.send(recipient.fcm_token, title, body, notification.data)
                except httpx.HTTPError as e:
                    raise wrap_external_exception(
                        e, operation="push_notification", user_id=recipient_id
                    ) from e

            notifications_total.labels(type=notification_type.value, status="delivered").inc()
            return notification

        except Exception as e:
            notifications_total.labels(type=notification_type.value, status="failed").inc()
            logger.error(
                f"Failed to notify {recipient_id} ({notification_type.value}): {e}",
                exc_info=True
            )
            return None

    async def notify_wake_up(self, user: User, time: str) -> int:
        """
        Tell all of user's friends that they woke up.

        Returns:
            Number of friends notified without error
        """
        friend_ids = await self.store.list_friend_ids(user.id)
        sent = 0
        for friend_id in friend_ids:
            result = await self._dispatch(
                friend_id,
                NotificationType.WAKE_UP,
                title=f"{user.display_name} is up! 🌅",
                body=f"{user.display_name} woke up at {time} after solving MATH!",
                data={"user_id": user.id, "time": time},
            )
            if result:
                sent += 1

        logger.info(f"Notified {sent}/{len(friend_ids)} friends of {user.id}'s wake-up at {time}")
        return sent

    async def notify_shame(self, target_id: str, from_user: User) -> Optional[Notification]:
        """Tell the target they were shamed"""
        return await self._dispatch(
            target_id,
            NotificationType.SHAME,
            title="You got SHAMED! 😴",
            body=f"{from_user.display_name} shamed you for oversleeping. Wake up!",
            data={"from_user_id": from_user.id},
        )

    async def notify_friend_request(self, request: FriendRequest) -> Optional[Notification]:
        """Tell the addressee about a new request"""
        return await self._dispatch(
            request.to_user_id,
            NotificationType.FRIEND_REQUEST,
            title="New friend request",
            body=f"{request.from_user_display_name} wants to hold you accountable.",
            data={"request_id": request.id, "from_user_id": request.from_user_id},
        )

    async def notify_friend_accepted(self, request: FriendRequest) -> Optional[Notification]:
        """Tell the sender their request was accepted"""
        return await self._dispatch(
            request.from_user_id,
            NotificationType.FRIEND_ACCEPTED,
            title="Friend request accepted",
            body=f"{request.to_user_display_name} accepted your friend request.",
            data={"request_id": request.id, "friend_id": request.to_user_id},
        )

    async def notify_shame_opportunities(self, user: User, oversleepers: List[User]) -> Optional[Notification]:
        """Nudge user about friends who are past their goal and still asleep"""
        if not oversleepers:
            return None

        names = ", ".join(friend.display_name for friend in oversleepers[:3])
        if len(oversleepers) > 3:
            names += f" and {len(oversleepers) - 3} more"

        return await self._dispatch(
            user.id,
            NotificationType.SHAME_OPPORTUNITY,
            title="Someone is still sleeping 👀",
            body=f"{names} missed their wake-up goal. Time to shame!",
            data={"user_ids": ",".join(friend.id for friend in oversleepers)},
        )

    async def register_push_token(self, user_id: str, token: str) -> User:
        """Store the device token used for push delivery"""
        token = (token or "").strip()
        if not token:
            raise ValidationError("Push token must not be empty", field="token", value=token, user_id=user_id)

        # raises RecordNotFoundError for an unknown user
        user = await self.store.update_user_profile(user_id, {"fcm_token": token})
        logger.info(f"Registered push token for {user_id}")
        return user

    async def list_notifications(self, user_id: str, limit: int = 50) -> List[Notification]:
        """Inbox, newest first"""
        return await self.store.list_notifications(user_id, limit)

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        """Mark one inbox entry as read"""
        if not await self.store.mark_notification_read(user_id, notification_id):
            raise RecordNotFoundError(
                f"Notification {notification_id} not found",
                record_type="Notification",
                record_id=notification_id,
                user_id=user_id,
            )
