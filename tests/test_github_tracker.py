"""Tests for the GitHub issue tracker.

HTTP is served by ``httpx.MockTransport`` so request payloads and every
error-status mapping can be checked without network access.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from error_analyzer.issue_trackers.github import (
    MAX_TITLE_LENGTH,
    GitHubIssueTracker,
    build_issue_body,
    build_rule_based_title,
    build_title_prefix,
)

ANALYSIS = {
    "status": "completed",
    "root_cause": "Connection pool exhausted",
    "impact": "Checkout fails",
    "similar_issues": ["pool sizing"],
}
CONTEXT = {"environment": "production", "url": "https://shop.example.com/checkout"}


def _tracker(handler, **kwargs) -> GitHubIssueTracker:
    client = httpx.AsyncClient(
        base_url="https://api.github.com", transport=httpx.MockTransport(handler)
    )
    defaults = dict(token="ghp_test", repository="acme/shop", client=client)
    defaults.update(kwargs)
    return GitHubIssueTracker(**defaults)


def _title_generator(**kwargs) -> MagicMock:
    generator = MagicMock()
    generator.generate_title_suffix = AsyncMock(**kwargs)
    return generator


# ---------------------------------------------------------------------------
# Titles and body
# ---------------------------------------------------------------------------


class TestTitles:
    def test_prefix(self, make_report):
        report = make_report(exception_class="app.db.ConnectionLost", severity="critical")
        assert build_title_prefix(report) == "[Error][CRITICAL] ConnectionLost: "

    def test_long_exception_name_shortened(self, make_report):
        report = make_report(exception_class="A" * 40)
        assert build_title_prefix(report) == f"[Error][HIGH] {'A' * 30}...: "

    def test_rule_based_title_normalises_whitespace(self, make_report):
        report = make_report(message="line one\n   line two")
        assert build_rule_based_title(report) == "[Error][HIGH] RuntimeError: line one line two"

    def test_rule_based_title_truncated(self, make_report):
        title = build_rule_based_title(make_report(message="x" * 500))
        assert len(title) == MAX_TITLE_LENGTH
        assert title.endswith("...")

    @pytest.mark.asyncio
    async def test_generated_suffix_used(self, make_report):
        tracker = _tracker(lambda r: httpx.Response(201), title_generator=_title_generator(
            return_value='  "Pool exhausted during checkout"\n'
        ))

        title = await tracker.build_title(make_report(), ANALYSIS, CONTEXT)

        assert title == "[Error][HIGH] RuntimeError: Pool exhausted during checkout"

    @pytest.mark.asyncio
    async def test_generator_none_falls_back(self, make_report):
        tracker = _tracker(lambda r: httpx.Response(201), title_generator=_title_generator(return_value=None))
        report = make_report()

        assert await tracker.build_title(report, ANALYSIS, CONTEXT) == build_rule_based_title(report)

    @pytest.mark.asyncio
    async def test_generator_error_falls_back(self, make_report):
        tracker = _tracker(
            lambda r: httpx.Response(201),
            title_generator=_title_generator(side_effect=RuntimeError("model unavailable")),
        )
        report = make_report()

        assert await tracker.build_title(report, ANALYSIS, CONTEXT) == build_rule_based_title(report)

    @pytest.mark.asyncio
    async def test_hanging_generator_falls_back_within_timeout(self, make_report):
        seen = {}

        async def never_returns(*args):
            await asyncio.Event().wait()

        def handler(request: httpx.Request) -> httpx.Response:
            seen["payload"] = json.loads(request.content)
            return httpx.Response(
                201, json={"html_url": "https://github.com/acme/shop/issues/8", "number": 8}
            )

        generator = MagicMock()
        generator.generate_title_suffix = never_returns
        tracker = _tracker(handler, title_generator=generator, title_timeout=0.05)
        report = make_report()

        result = await asyncio.wait_for(
            tracker.create_issue(report, ANALYSIS, "trace", CONTEXT), timeout=2
        )
        await tracker.close()

        assert result.status == "created"
        assert seen["payload"]["title"] == build_rule_based_title(report)

    def test_body_sections(self, make_report):
        body = build_issue_body(make_report(), ANALYSIS, "sanitized trace", CONTEXT)

        assert "## Summary" in body
        assert "Connection pool exhausted" in body
        assert "- pool sizing" in body
        assert "sanitized trace" in body
        assert '"environment": "production"' in body


# ---------------------------------------------------------------------------
# create_issue
# ---------------------------------------------------------------------------


class TestCreateIssue:
    @pytest.mark.asyncio
    async def test_created(self, make_report):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["payload"] = json.loads(request.content)
            return httpx.Response(
                201, json={"html_url": "https://github.com/acme/shop/issues/7", "number": 7}
            )

        tracker = _tracker(handler, labels=["bug", "error-analysis"], assignees=["octocat"])
        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)
        await tracker.close()

        assert result.status == "created"
        assert result.url == "https://github.com/acme/shop/issues/7"
        assert result.number == 7
        assert seen["path"] == "/repos/acme/shop/issues"
        assert seen["payload"]["labels"] == ["bug", "error-analysis"]
        assert seen["payload"]["assignees"] == ["octocat"]
        assert seen["payload"]["title"].startswith("[Error][HIGH] RuntimeError: ")

    @pytest.mark.asyncio
    async def test_empty_labels_omitted(self, make_report):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["payload"] = json.loads(request.content)
            return httpx.Response(201, json={"html_url": "u", "number": 1})

        tracker = _tracker(handler, labels=[], assignees=[])
        await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert "labels" not in seen["payload"]
        assert "assignees" not in seen["payload"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token,repository", [("", "acme/shop"), ("ghp_test", "")])
    async def test_missing_config(self, make_report, token, repository):
        handler = MagicMock()
        tracker = _tracker(handler, token=token, repository=repository)

        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert result.status == "missing_config"
        handler.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,expected",
        [
            (401, "unauthorized"),
            (403, "forbidden"),
            (404, "repository_not_found"),
            (422, "validation_failed"),
            (429, "rate_limited"),
            (500, "request_failed"),
        ],
    )
    async def test_error_status_mapping(self, make_report, code, expected):
        tracker = _tracker(lambda r: httpx.Response(code, json={"message": "nope"}))

        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert result.status == expected
        assert result.message == "nope"

    @pytest.mark.asyncio
    async def test_secondary_rate_limit(self, make_report):
        tracker = _tracker(
            lambda r: httpx.Response(
                403, headers={"X-RateLimit-Remaining": "0"}, json={"message": "API rate limit exceeded"}
            )
        )

        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert result.status == "rate_limited"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, make_report):
        tracker = _tracker(lambda r: httpx.Response(502, text="Bad Gateway"))

        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert result.status == "request_failed"
        assert "502" in result.message

    @pytest.mark.asyncio
    async def test_network_error(self, make_report):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        tracker = _tracker(handler)

        result = await tracker.create_issue(make_report(), ANALYSIS, "trace", CONTEXT)

        assert result.status == "request_failed"
        assert "connection refused" in result.message
