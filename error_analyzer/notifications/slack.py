"""Slack incoming-webhook notifications."""

from __future__ import annotations

import time

import structlog
from slack_sdk.webhook.async_client import AsyncWebhookClient

from error_analyzer.models.error_report import ErrorReport
from error_analyzer.notifications.base import NotificationChannel
from error_analyzer.schemas.analysis import SEVERITY_LEVELS

logger = structlog.get_logger()

REQUEST_TIMEOUT_SECONDS = 10

_COLOR_BY_SEVERITY = {"critical": "danger", "high": "warning"}


class SlackNotificationChannel(NotificationChannel):
    """Posts a message for reports at or above ``min_severity``."""

    def __init__(
        self,
        webhook_url: str,
        min_severity: str = "high",
        channel: str = "",
        username: str = "Error Analyzer",
        icon: str = ":warning:",
        client: AsyncWebhookClient | None = None,
    ):
        self.webhook_url = webhook_url
        self.min_severity = min_severity
        self.channel = channel
        self.username = username
        self.icon = icon
        self._client = client
        if self._client is None and webhook_url:
            self._client = AsyncWebhookClient(url=webhook_url, timeout=REQUEST_TIMEOUT_SECONDS)

    def should_notify(self, severity: str) -> bool:
        report_level = SEVERITY_LEVELS.get(severity, 0)
        min_level = SEVERITY_LEVELS.get(self.min_severity, SEVERITY_LEVELS["high"])
        return report_level >= min_level

    def build_payload(self, report: ErrorReport) -> dict:
        analysis = report.analysis or {}
        payload: dict = {
            "username": self.username,
            "icon_emoji": self.icon,
            "text": f":rotating_light: {report.severity.upper()} error detected",
            "attachments": [
                {
                    "color": _COLOR_BY_SEVERITY.get(report.severity, "good"),
                    "title": report.exception_class,
                    "fields": [
                        {"title": "Severity", "value": report.severity.upper(), "short": True},
                        {"title": "Category", "value": report.category, "short": True},
                        {"title": "Root Cause", "value": analysis.get("root_cause") or "N/A", "short": False},
                        {"title": "Impact", "value": analysis.get("impact") or "N/A", "short": False},
                        {"title": "File", "value": f"{report.file}:{report.line}", "short": False},
                    ],
                    "footer": "Error Analysis System",
                    "ts": int(time.time()),
                }
            ],
        }
        if self.channel:
            payload["channel"] = self.channel
        return payload

    async def notify(self, report: ErrorReport) -> None:
        if not self.should_notify(report.severity):
            return

        report_id = str(report.id) if report.id else None
        if self._client is None:
            logger.warning("slack_webhook_not_configured", report_id=report_id)
            return

        try:
            resp = await self._client.send_dict(self.build_payload(report))
        except Exception as e:
            logger.error(
                "slack_notification_failed",
                report_id=report_id,
                exception=type(e).__name__,
                error=str(e),
            )
            return

        if resp.status_code >= 400:
            logger.error(
                "slack_notification_failed",
                report_id=report_id,
                http_status=resp.status_code,
                error=str(resp.body)[:500],
            )
            return

        logger.info("slack_notification_sent", report_id=report_id, severity=report.severity)
