from __future__ import annotations

from error_analyzer.models.error_report import ErrorReport
from error_analyzer.title_generators.base import IssueTitleGenerator


class NullIssueTitleGenerator(IssueTitleGenerator):
    async def generate_title_suffix(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_context: dict,
    ) -> str | None:
        return None
