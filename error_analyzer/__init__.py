"""Capture application errors, deduplicate them and enrich them with AI analysis."""

from error_analyzer.capture import ErrorCapture
from error_analyzer.factory import create_capture
from error_analyzer.job import ErrorAnalysisJob, JobResult

__all__ = [
    "ErrorAnalysisJob",
    "ErrorCapture",
    "JobResult",
    "create_capture",
]
