"""
Prometheus metrics definitions for shame-game.

Categories:
- HTTP/API metrics: Request counts, latency
- Game metrics: Challenges, wake-ups, scores, shames
- Social metrics: Friend requests, feed interactions
- Notification metrics: Delivery outcomes

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# HTTP/API Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

# =============================================================================
# Game Metrics
# =============================================================================

challenges_generated_total = Counter(
    "challenges_generated_total",
    "Wake-up math challenges issued",
    ["operation"],  # operation: addition/subtraction
)

answers_submitted_total = Counter(
    "answers_submitted_total",
    "Challenge answers submitted",
    ["result"],  # result: correct/incorrect/no_challenge
)

wake_ups_total = Counter(
    "wake_ups_total",
    "Verified wake-ups logged",
)

daily_score = Histogram(
    "daily_score",
    "Distribution of computed daily scores",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

shames_total = Counter(
    "shames_total",
    "Shame events applied",
    ["deducted"],  # deducted: yes when points were removed
)

# =============================================================================
# Social Metrics
# =============================================================================

friend_requests_total = Counter(
    "friend_requests_total",
    "Friend request transitions",
    ["action"],  # action: sent/accepted/rejected/cancelled
)

feed_interactions_total = Counter(
    "feed_interactions_total",
    "Reactions and comments on feed items",
    ["kind"],  # kind: reaction/comment
)

# =============================================================================
# Notification Metrics
# =============================================================================

notifications_total = Counter(
    "notifications_total",
    "Notifications dispatched",
    ["type", "status"],  # status: delivered/failed
)

# =============================================================================
# Error Metrics
# =============================================================================

errors_total = Counter(
    "errors_total",
    "Total errors by type and component",
    ["error_type", "component"],
)
