"""Gemini-written issue titles, paid for out of the shared analysis quota."""

from __future__ import annotations

import asyncio
import re

import structlog
from google import genai
from google.genai import types

from error_analyzer.errors import AnalysisError
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.quota import QuotaGate
from error_analyzer.title_generators.base import IssueTitleGenerator

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")
_STRIP_CHARS = " \t\n\r\0\x0b\"'`"

_PROMPT_TEMPLATE = """\
You write GitHub issue titles for application errors.
Generate only the summary part that follows the title prefix.

Requirements:
- Write in the same language as the error message, concise and specific
- One line only
- No Markdown, code fences or quotation marks
- Describe the concrete symptom or cause
- Do not include personal data

Input:
- Severity: {severity}
- Category: {category}
- Exception: {exception}
- Message: {message}
- Root cause: {root_cause}
- Impact: {impact}
- Location: {file}:{line}
- URL: {url}

Output the one-line summary only.
"""


def normalize_single_line(text: str) -> str:
    normalized = text.replace("```", " ")
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip(_STRIP_CHARS)


class GeminiIssueTitleGenerator(IssueTitleGenerator):
    """Asks Gemini for a title summary; each call consumes one quota unit."""

    def __init__(
        self,
        quota: QuotaGate,
        api_key: str,
        model: str = "gemini-2.5-flash-lite",
        client: genai.Client | None = None,
    ):
        self.quota = quota
        self.client = client or genai.Client(api_key=api_key)
        self.model = model

    def build_prompt(self, report: ErrorReport, analysis: dict, sanitized_context: dict) -> str:
        return _PROMPT_TEMPLATE.format(
            severity=report.severity or "medium",
            category=report.category or "other",
            exception=report.short_exception_class,
            message=report.message,
            root_cause=analysis.get("root_cause", ""),
            impact=analysis.get("impact", ""),
            file=report.file,
            line=report.line,
            url=sanitized_context.get("url", "N/A"),
        )

    async def generate_title_suffix(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_context: dict,
    ) -> str | None:
        if not await self.quota.try_consume():
            logger.info(
                "issue_title_generation_skipped",
                report_id=str(report.id) if report.id else None,
                reason="quota_exhausted",
                fallback=True,
            )
            return None

        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=self.build_prompt(report, analysis, sanitized_context),
            config=types.GenerateContentConfig(temperature=0.2, max_output_tokens=200),
        )

        text = (response.text or "").strip()
        if not text:
            raise AnalysisError("Issue title response was empty")

        normalized = normalize_single_line(text)
        if not normalized:
            raise AnalysisError("Issue title response had no usable text")
        return normalized
