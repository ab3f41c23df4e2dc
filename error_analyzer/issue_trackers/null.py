from __future__ import annotations

from error_analyzer.issue_trackers.base import IssueTracker
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.schemas.analysis import IssueResult


class NullIssueTracker(IssueTracker):
    """Issue creation switched off."""

    async def create_issue(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> IssueResult:
        return IssueResult(status="disabled")
