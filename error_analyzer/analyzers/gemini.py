"""Google Gemini error analyzer."""

from __future__ import annotations

import asyncio
import json
import platform

import structlog
from google import genai
from google.genai import types
from pydantic import ValidationError

from error_analyzer.analyzers.base import AiAnalyzer
from error_analyzer.errors import AnalysisError
from error_analyzer.json_extract import extract_json
from error_analyzer.schemas.analysis import AnalysisResult

logger = structlog.get_logger()

# Below the job timeout so a hung call fails the report instead of the attempt
ANALYSIS_TIMEOUT_SECONDS = 45.0

_PROMPT_TEMPLATE = """\
You are an expert in diagnosing errors in Python applications.
Analyze the error below and answer with a single JSON object only (no code fences).

[Error]
- Exception: {exception_type}
- Message: {message}
- Location: {file}:{line}
- Stack trace:
{trace}

[Environment]
- Python version: {python_version}
- Environment: {environment}
- Request URL: {url}
- User ID: {user_id}

Return exactly this shape:

{{
  "severity": "critical|high|medium|low",
  "category": "database|api|authentication|authorization|validation|performance|network|other",
  "root_cause": "short explanation of the root cause (max 100 chars)",
  "impact": "impact on users or the system (max 100 chars)",
  "immediate_action": "what to do right now (max 200 chars)",
  "recommended_fix": "permanent fix, with a concrete code example if useful (max 500 chars)",
  "similar_issues": ["related known issues or documentation"],
  "prevention": "how to prevent this class of error (max 200 chars)"
}}
"""


def build_analysis_prompt(
    exception_type: str,
    message: str,
    file: str,
    line: int,
    sanitized_trace: str,
    sanitized_context: dict,
) -> str:
    return _PROMPT_TEMPLATE.format(
        exception_type=exception_type,
        message=message,
        file=file,
        line=line,
        trace=sanitized_trace,
        python_version=platform.python_version(),
        environment=sanitized_context.get("environment", "N/A"),
        url=sanitized_context.get("url", "N/A"),
        user_id=sanitized_context.get("user_id", "guest"),
    )


def parse_analysis(text: str) -> AnalysisResult:
    """Turn raw model output into an ``AnalysisResult``."""
    text = (text or "").strip()
    if not text:
        raise AnalysisError("AI response was empty")

    try:
        data = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        raise AnalysisError("Failed to parse AI response as JSON") from e

    if not isinstance(data, dict):
        raise AnalysisError(f"AI response is not a JSON object (got {type(data).__name__})")

    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(f"AI response has an invalid shape: {e}") from e


class GeminiAnalyzer(AiAnalyzer):
    """Analyzer backed by Google Gemini models."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
        max_output_tokens: int = 8000,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
        client: genai.Client | None = None,
    ):
        self.client = client or genai.Client(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

    async def analyze(
        self,
        exception_type: str,
        message: str,
        file: str,
        line: int,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> AnalysisResult:
        prompt = build_analysis_prompt(
            exception_type, message, file, line, sanitized_trace, sanitized_context
        )
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.models.generate_content,
                    model=self.model,
                    contents=prompt,
                    config=config,
                ),
                self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisError(f"Gemini analysis timed out after {self.timeout}s") from e

        result = parse_analysis(response.text)
        logger.info(
            "gemini_analysis_complete",
            model=self.model,
            severity=result.severity,
            category=result.category,
        )
        return result
