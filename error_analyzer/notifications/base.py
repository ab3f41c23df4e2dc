"""Notification channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from error_analyzer.models.error_report import ErrorReport


class NotificationChannel(ABC):
    """Announces analyzed reports to humans.

    ``notify`` checks ``should_notify`` itself and must swallow and log its
    own delivery failures; the analysis job calls it unconditionally.
    """

    @abstractmethod
    async def notify(self, report: ErrorReport) -> None:
        ...

    @abstractmethod
    def should_notify(self, severity: str) -> bool:
        ...
