"""Analyzer used when AI analysis is switched off."""

from __future__ import annotations

from error_analyzer.analyzers.base import AiAnalyzer
from error_analyzer.schemas.analysis import AnalysisResult


class NullAnalyzer(AiAnalyzer):
    """Returns a placeholder analysis without calling any provider."""

    async def analyze(
        self,
        exception_type: str,
        message: str,
        file: str,
        line: int,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> AnalysisResult:
        return AnalysisResult(
            severity="medium",
            category="other",
            root_cause="AI analysis is disabled",
            impact="N/A",
            immediate_action="Set ERROR_ANALYZER_ANALYZER_DRIVER=gemini to enable AI analysis.",
            recommended_fix="Configure ERROR_ANALYZER_GEMINI_API_KEY and switch the analyzer driver to gemini.",
            similar_issues=[],
            prevention="N/A",
        )
