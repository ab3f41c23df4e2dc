"""Issue tracker interface.

Trackers never raise: every failure mode maps to an ``IssueResult`` status so
the analysis job can always merge the outcome into the report.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from error_analyzer.models.error_report import ErrorReport
from error_analyzer.schemas.analysis import IssueResult


class IssueTracker(ABC):
    """Abstract base class for issue tracker integrations."""

    @abstractmethod
    async def create_issue(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> IssueResult:
        """Open an issue for an analyzed report."""
        ...

    async def close(self) -> None:
        """Clean up resources. Override if the tracker holds connections."""
