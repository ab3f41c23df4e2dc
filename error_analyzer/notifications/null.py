from __future__ import annotations

from error_analyzer.models.error_report import ErrorReport
from error_analyzer.notifications.base import NotificationChannel


class NullNotificationChannel(NotificationChannel):
    """Notifications switched off."""

    async def notify(self, report: ErrorReport) -> None:
        return None

    def should_notify(self, severity: str) -> bool:
        return False
