"""
Service Layer Package

Business logic between the REST API and the storage layer.

Core Services:
- AuthService: Accounts, sessions, profile updates
- WakeUpService: Math challenge, wake-up logging, scoring, shame deductions
- FriendsService: Friend requests, friendships, user search
- FeedService: Activity feed, reactions, comments, shaming
- NotificationService: Inbox and push delivery
"""

from shame_game.services.container import (
    ServiceContainer,
    create_store,
    get_container,
    init_container,
    reset_container,
)

__all__ = [
    "ServiceContainer",
    "create_store",
    "get_container",
    "init_container",
    "reset_container",
]
