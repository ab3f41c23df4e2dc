from error_analyzer.issue_trackers.base import IssueTracker
from error_analyzer.issue_trackers.null import NullIssueTracker

__all__ = ["IssueTracker", "NullIssueTracker"]
