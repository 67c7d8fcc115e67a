"""Slack notifications: delivery, formatting and idempotency tracking."""

from .engine import NotificationEngine, RetryConfig
from .slack import SlackClient, SlackMessage
from .tracker import NotificationTracker, NotificationType

__all__ = [
    "NotificationEngine",
    "NotificationTracker",
    "NotificationType",
    "RetryConfig",
    "SlackClient",
    "SlackMessage",
]
