"""GitHub issue tracker using the GitHub REST API."""

from __future__ import annotations

import asyncio
import json
import re

import httpx
import structlog

from error_analyzer.issue_trackers.base import IssueTracker
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.schemas.analysis import IssueResult
from error_analyzer.title_generators.base import IssueTitleGenerator
from error_analyzer.title_generators.null import NullIssueTitleGenerator

logger = structlog.get_logger()

# GitHub API base
_DEFAULT_BASE = "https://api.github.com"

REQUEST_TIMEOUT_SECONDS = 10.0
# A generated title is optional; past this the rule-based title is used
TITLE_TIMEOUT_SECONDS = 10.0
MAX_TITLE_LENGTH = 80
MIN_TITLE_PART_LENGTH = 10
MAX_EXCEPTION_NAME_LENGTH = 30

_WHITESPACE = re.compile(r"\s+")
_STRIP_CHARS = " \t\n\r\0\x0b\"'`"

_STATUS_BY_HTTP_CODE = {
    401: "unauthorized",
    403: "forbidden",
    404: "repository_not_found",
    422: "validation_failed",
    429: "rate_limited",
}


def _truncate(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    if max_length <= 3:
        return "..."[:max_length]
    return value[: max_length - 3] + "..."


def build_title_prefix(report: ErrorReport) -> str:
    name = report.short_exception_class
    if len(name) > MAX_EXCEPTION_NAME_LENGTH:
        name = name[:MAX_EXCEPTION_NAME_LENGTH] + "..."
    return f"[Error][{(report.severity or 'medium').upper()}] {name}: "


def build_rule_based_title(report: ErrorReport) -> str:
    """Deterministic title from the prefix and the whitespace-normalised message."""
    prefix = build_title_prefix(report)
    max_message_length = max(MIN_TITLE_PART_LENGTH, MAX_TITLE_LENGTH - len(prefix))
    message = _WHITESPACE.sub(" ", report.message or "").strip()
    return prefix + _truncate(message, max_message_length)


def normalize_title_suffix(suffix: str, max_length: int) -> str | None:
    normalized = _WHITESPACE.sub(" ", suffix).strip(_STRIP_CHARS)
    if not normalized:
        return None
    return _truncate(normalized, max_length) or None


def _bullet_list(items: object) -> str:
    if not isinstance(items, list) or not items:
        return "- N/A"
    return "\n".join(f"- {item}" for item in items)


def build_issue_body(
    report: ErrorReport,
    analysis: dict,
    sanitized_trace: str,
    sanitized_context: dict,
) -> str:
    occurred_at = report.occurred_at.isoformat() if report.occurred_at else "N/A"
    context_json = json.dumps(sanitized_context, indent=2, ensure_ascii=False, default=str)

    return f"""## Summary
- Error report ID: {report.id or 'N/A'}
- Severity: {report.severity}
- Category: {report.category}
- Exception: {report.exception_class}
- Message: {report.message}
- Location: {report.file}:{report.line}
- Occurred at: {occurred_at}
- Fingerprint: {report.fingerprint}
- Request URL: {sanitized_context.get('url', 'N/A')}
- User ID: {sanitized_context.get('user_id', 'guest')}
- Environment: {sanitized_context.get('environment', 'N/A')}

## AI analysis
- Root cause: {analysis.get('root_cause') or 'N/A'}
- Impact: {analysis.get('impact') or 'N/A'}
- Immediate action: {analysis.get('immediate_action') or 'N/A'}
- Recommended fix: {analysis.get('recommended_fix') or 'N/A'}
- Prevention: {analysis.get('prevention') or 'N/A'}
- Similar issues:
{_bullet_list(analysis.get('similar_issues'))}

## Stack trace
```
{sanitized_trace}
```

## Context
```json
{context_json}
```
"""


class GitHubIssueTracker(IssueTracker):
    """Creates one GitHub issue per analyzed report."""

    def __init__(
        self,
        token: str,
        repository: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
        title_generator: IssueTitleGenerator | None = None,
        title_timeout: float = TITLE_TIMEOUT_SECONDS,
        base_url: str = _DEFAULT_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        self.token = token
        self.repository = repository.strip().strip("/")
        self.labels = [label for label in (labels or []) if label]
        self.assignees = [user for user in (assignees or []) if user]
        self.title_generator = title_generator or NullIssueTitleGenerator()
        self.title_timeout = title_timeout
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "error-analyzer",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # Title and payload
    # ------------------------------------------------------------------

    async def build_title(self, report: ErrorReport, analysis: dict, sanitized_context: dict) -> str:
        fallback = build_rule_based_title(report)
        try:
            suffix = await asyncio.wait_for(
                self.title_generator.generate_title_suffix(report, analysis, sanitized_context),
                self.title_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "issue_title_generation_timed_out",
                report_id=str(report.id) if report.id else None,
                timeout=self.title_timeout,
                fallback=True,
            )
            return fallback
        except Exception as e:
            logger.warning(
                "issue_title_generation_failed",
                report_id=str(report.id) if report.id else None,
                exception=type(e).__name__,
                error=str(e),
                fallback=True,
            )
            return fallback

        if suffix is None:
            return fallback

        prefix = build_title_prefix(report)
        max_suffix_length = max(MIN_TITLE_PART_LENGTH, MAX_TITLE_LENGTH - len(prefix))
        normalized = normalize_title_suffix(suffix, max_suffix_length)
        return prefix + normalized if normalized else fallback

    async def build_payload(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> dict:
        payload: dict = {
            "title": await self.build_title(report, analysis, sanitized_context),
            "body": build_issue_body(report, analysis, sanitized_trace, sanitized_context),
        }
        if self.labels:
            payload["labels"] = self.labels
        if self.assignees:
            payload["assignees"] = self.assignees
        return payload

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _map_error_status(resp: httpx.Response) -> str:
        if resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0":
            return "rate_limited"
        return _STATUS_BY_HTTP_CODE.get(resp.status_code, "request_failed")

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        return f"GitHub API error {resp.status_code}: {resp.text[:500]}"

    # ------------------------------------------------------------------
    # IssueTracker
    # ------------------------------------------------------------------

    async def create_issue(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_trace: str,
        sanitized_context: dict,
    ) -> IssueResult:
        report_id = str(report.id) if report.id else None

        if not self.token or not self.repository:
            message = "GitHub issue tracker is enabled but token/repository is not configured"
            logger.warning(
                "github_issue_missing_config",
                report_id=report_id,
                has_token=bool(self.token),
                repository=self.repository,
            )
            return IssueResult(status="missing_config", message=message)

        try:
            payload = await self.build_payload(report, analysis, sanitized_trace, sanitized_context)
            resp = await self._client.post(f"/repos/{self.repository}/issues", json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "github_issue_request_failed",
                report_id=report_id,
                exception=type(e).__name__,
                error=str(e),
            )
            return IssueResult(status="request_failed", message=str(e) or type(e).__name__)
        except Exception as e:
            logger.error(
                "github_issue_unexpected_error",
                report_id=report_id,
                exception=type(e).__name__,
                error=str(e),
            )
            return IssueResult(status="request_failed", message=str(e) or type(e).__name__)

        if resp.status_code >= 400:
            status = self._map_error_status(resp)
            message = self._error_message(resp)
            logger.error(
                "github_issue_create_failed",
                report_id=report_id,
                http_status=resp.status_code,
                status=status,
                error=message,
            )
            return IssueResult(status=status, message=message)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        logger.info("github_issue_created", report_id=report_id, number=data.get("number"))
        return IssueResult(status="created", url=data.get("html_url"), number=data.get("number"))

    async def close(self) -> None:
        await self._client.aclose()
