"""Exception types raised inside the analysis pipeline.

Duplicate reservations are not errors and have no exception here; the report
stores return them as a ``Reservation`` value instead.
"""

from __future__ import annotations


class ErrorAnalyzerError(Exception):
    """Base class for error analyzer failures."""


class AnalysisError(ErrorAnalyzerError):
    """The AI provider failed or returned something that is not an analysis."""


class QuotaError(AnalysisError):
    """No quota unit could be taken for an analysis call."""


class QuotaExceededError(QuotaError):
    """The daily analysis quota is used up."""

    def __init__(self, limit: int):
        super().__init__(f"Daily analysis quota of {limit} calls exhausted")
        self.limit = limit


class QuotaUnavailableError(QuotaError):
    """The quota counter could not be checked (lock contention or Redis failure).

    Quota may be left; the gate fails closed rather than risk overspending.
    """


class ReportStoreError(ErrorAnalyzerError):
    """The report store is unreachable or rejected a write for a reason other than a duplicate."""
