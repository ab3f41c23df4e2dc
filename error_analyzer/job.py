"""Error analysis job: sanitize, reserve, analyze, then fan out.

State machine for one invocation::

    sanitize -> reserve --duplicate--> SKIPPED
                   |
                quota -> analyze --ok--> update -> notify -> issue -> ANALYZED
                              \\--error--> mark failed -> FAILED

Reservation is the only serialisation point between concurrent jobs: exactly
one job per ``(fingerprint, dedupe_window)`` gets past it. A reserved report is
never re-analyzed, even when the job itself is retried, so quota is spent at
most once per window.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from error_analyzer.analyzers.base import AiAnalyzer
from error_analyzer.errors import QuotaExceededError, QuotaUnavailableError
from error_analyzer.fingerprint import (
    DEFAULT_WINDOW_MINUTES,
    compute_dedupe_window,
    compute_fingerprint,
)
from error_analyzer.issue_trackers.base import IssueTracker
from error_analyzer.models.error_report import (
    PLACEHOLDER_CATEGORY,
    PLACEHOLDER_SEVERITY,
    ErrorReport,
)
from error_analyzer.notifications.base import NotificationChannel
from error_analyzer.quota import QuotaGate
from error_analyzer.sanitizer import sanitize_context, sanitize_trace
from error_analyzer.schemas.event import ErrorEvent, qualified_name
from error_analyzer.storage.base import ReportDraft, ReportStore

logger = structlog.get_logger()

# Job outcomes
SKIPPED = "skipped"
ANALYZED = "analyzed"
FAILED = "failed"

ISSUE_RESULT_KEY = "github_issue"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobResult:
    outcome: str  # "skipped" | "analyzed" | "failed"
    report: ErrorReport | None = None


class ErrorAnalysisJob:
    """Processes one error event end to end.

    Store, quota gate and collaborators are injected; the job does not know
    whether the store is durable or ephemeral.
    """

    def __init__(
        self,
        store: ReportStore,
        quota: QuotaGate,
        analyzer: AiAnalyzer,
        issue_tracker: IssueTracker,
        notifier: NotificationChannel,
        *,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.quota = quota
        self.analyzer = analyzer
        self.issue_tracker = issue_tracker
        self.notifier = notifier
        self.window_minutes = window_minutes
        self._clock = clock

    def build_draft(self, event: ErrorEvent, sanitized_trace: str, sanitized_context: dict) -> ReportDraft:
        now = self._clock()
        return ReportDraft(
            exception_class=event.exception_type,
            message=event.message,
            file=event.file,
            line=event.line,
            fingerprint=compute_fingerprint(event.exception_type, event.file, event.line),
            dedupe_window=compute_dedupe_window(now.timestamp(), self.window_minutes),
            trace=sanitized_trace,
            occurred_at=now,
            context=sanitized_context,
        )

    async def run(self, event: ErrorEvent) -> JobResult:
        # Sanitize first: even the placeholder row must not hold raw PII
        sanitized_context = sanitize_context(event.context)
        sanitized_trace = sanitize_trace(event.trace)
        draft = self.build_draft(event, sanitized_trace, sanitized_context)

        # ReportStoreError propagates so the job-level retry can kick in
        reservation = await self.store.reserve(draft)
        if reservation.is_duplicate:
            return JobResult(outcome=SKIPPED)

        report = reservation.report
        log = logger.bind(
            report_id=str(report.id) if report.id else None,
            fingerprint=draft.fingerprint,
            exception=draft.exception_class,
        )

        try:
            # QuotaError ends the job failed, like any analysis error
            await self.quota.consume()

            result = await self.analyzer.analyze(
                event.exception_type,
                event.message,
                event.file,
                event.line,
                sanitized_trace,
                sanitized_context,
            )
            await self.store.update(
                report,
                severity=result.severity,
                category=result.category,
                analysis={**result.model_dump(), "status": "completed"},
            )
        except Exception as e:
            await self._mark_failed(report, e, log)
            return JobResult(outcome=FAILED, report=report)

        log.info("error_analysis_complete", severity=report.severity, category=report.category)

        # Both collaborators handle their own failures
        await self.notifier.notify(report)

        issue = await self.issue_tracker.create_issue(
            report, dict(report.analysis), sanitized_trace, sanitized_context
        )
        if issue.status != "disabled":
            await self.store.update(
                report,
                analysis={**report.analysis, ISSUE_RESULT_KEY: issue.as_dict()},
            )
            log.info("issue_result_linked", issue_status=issue.status, issue_url=issue.url)

        return JobResult(outcome=ANALYZED, report=report)

    async def _mark_failed(self, report: ErrorReport, exc: Exception, log) -> None:
        """Terminal failed state. Not escalated to the notifier or issue tracker."""
        log.error(
            "error_analysis_failed",
            exception_type=qualified_name(type(exc)),
            error=str(exc),
            quota_exhausted=isinstance(exc, QuotaExceededError),
            quota_unavailable=isinstance(exc, QuotaUnavailableError),
        )
        await self.store.update(
            report,
            severity=PLACEHOLDER_SEVERITY,
            category=PLACEHOLDER_CATEGORY,
            analysis={
                "status": "failed",
                "error": {
                    "type": qualified_name(type(exc)),
                    "message": str(exc),
                    "occurred_at": self._clock().isoformat(),
                },
            },
        )
