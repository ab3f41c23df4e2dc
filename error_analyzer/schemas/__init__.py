from error_analyzer.schemas.analysis import (
    SEVERITY_LEVELS,
    AnalysisResult,
    IssueResult,
    IssueStatus,
)
from error_analyzer.schemas.event import ErrorEvent

__all__ = [
    "SEVERITY_LEVELS",
    "AnalysisResult",
    "ErrorEvent",
    "IssueResult",
    "IssueStatus",
]
