"""Abstract AI analyzer interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from error_analyzer.schemas.analysis import AnalysisResult


class AiAnalyzer(ABC):
    """Produces a diagnosis for one sanitized error."""

    @abstractmethod
    async def analyze(
        self,
        exception_type: str,
        message: str,
        file: str,
        line: int,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> AnalysisResult:
        """Analyze an error.

        Raises ``AnalysisError`` when the provider's output is empty, not
        JSON, or not a JSON object. Provider and network errors propagate
        unchanged.
        """
        ...
