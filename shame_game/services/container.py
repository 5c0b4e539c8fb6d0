"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from shame_game.config import STORAGE_BACKEND
from shame_game.db.store import MemoryStore, Store
from shame_game.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (store, push sender, clock) are injected.
    """

    # Infrastructure dependencies (injected)
    store: Store
    push_sender: Optional[object] = None  # PushSender; None picks one from config
    clock: Callable[[], datetime] = now_utc

    # Services (lazy-loaded via properties)
    _auth_service: Optional[object] = field(default=None, init=False, repr=False)
    _notification_service: Optional[object] = field(default=None, init=False, repr=False)
    _wakeup_service: Optional[object] = field(default=None, init=False, repr=False)
    _friends_service: Optional[object] = field(default=None, init=False, repr=False)
    _feed_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def auth_service(self):
        """Get AuthService instance (lazy-loaded)"""
        if self._auth_service is None:
            from shame_game.services.auth_service import AuthService
            self._auth_service = AuthService(self.store, clock=self.clock)
            logger.debug("AuthService instantiated")
        return self._auth_service

    @property
    def notification_service(self):
        """Get NotificationService instance (lazy-loaded)"""
        if self._notification_service is None:
            from shame_game.services.notification_service import NotificationService
            self._notification_service = NotificationService(
                self.store,
                push_sender=self.push_sender,
                clock=self.clock
            )
            logger.debug("NotificationService instantiated")
        return self._notification_service

    @property
    def wakeup_service(self):
        """Get WakeUpService instance (lazy-loaded)"""
        if self._wakeup_service is None:
            from shame_game.services.wakeup_service import WakeUpService
            self._wakeup_service = WakeUpService(
                self.store,
                self.notification_service,
                clock=self.clock
            )
            logger.debug("WakeUpService instantiated")
        return self._wakeup_service

    @property
    def friends_service(self):
        """Get FriendsService instance (lazy-loaded)"""
        if self._friends_service is None:
            from shame_game.services.friends_service import FriendsService
            self._friends_service = FriendsService(
                self.store,
                self.notification_service,
                self.wakeup_service,
                clock=self.clock
            )
            logger.debug("FriendsService instantiated")
        return self._friends_service

    @property
    def feed_service(self):
        """Get FeedService instance (lazy-loaded)"""
        if self._feed_service is None:
            from shame_game.services.feed_service import FeedService
            self._feed_service = FeedService(
                self.store,
                self.wakeup_service,
                self.notification_service,
                clock=self.clock
            )
            logger.debug("FeedService instantiated")
        return self._feed_service


def create_store(backend: str = STORAGE_BACKEND) -> Store:
    """Build the configured storage backend"""
    if backend == "postgres":
        from shame_game.db.postgres_store import PostgresStore
        return PostgresStore()
    return MemoryStore()


# Global container instance (initialized at API startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(
    store: Optional[Store] = None,
    push_sender: Optional[object] = None,
    clock: Callable[[], datetime] = now_utc
) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: Storage backend (defaults to STORAGE_BACKEND)
        push_sender: PushSender override
        clock: Source of "now"

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(
        store=store or create_store(),
        push_sender=push_sender,
        clock=clock
    )

    logger.info(f"Service container initialized ({_container.store.__class__.__name__})")
    return _container


def reset_container() -> None:
    """Drop the global container (tests and shutdown)"""
    global _container
    _container = None
