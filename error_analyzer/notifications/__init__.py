from error_analyzer.notifications.base import NotificationChannel
from error_analyzer.notifications.null import NullNotificationChannel

__all__ = ["NotificationChannel", "NullNotificationChannel"]
