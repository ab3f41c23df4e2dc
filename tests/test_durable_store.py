"""Durable-mode tests against a real SQLite database.

These run the reservation, the job and the stale sweep through the actual
``uq_error_reports_fingerprint_window`` constraint and JSON queries rather
than mocked sessions.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from error_analyzer.job import ANALYZED, SKIPPED, ErrorAnalysisJob
from error_analyzer.maintenance import STALE_ERROR_TYPE, sweep_stale_reports
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.quota import QuotaGate
from error_analyzer.schemas.analysis import AnalysisResult, IssueResult
from error_analyzer.storage.base import ReportDraft
from error_analyzer.storage.database import DatabaseReportStore

NOW = datetime(2023, 11, 14, 22, 15, tzinfo=timezone.utc)


def _draft(fingerprint: str = "f" * 64, occurred_at: datetime = NOW, dedupe_window: int = 100) -> ReportDraft:
    return ReportDraft(
        exception_class="RuntimeError",
        message="Something broke",
        file="/app/service/orders.py",
        line=42,
        fingerprint=fingerprint,
        dedupe_window=dedupe_window,
        trace="sanitized trace",
        occurred_at=occurred_at,
        context={"environment": "production"},
    )


def _durable_job(session_factory, redis) -> ErrorAnalysisJob:
    analyzer = MagicMock()
    analyzer.analyze = AsyncMock(
        return_value=AnalysisResult(
            severity="high",
            category="database",
            root_cause="Connection pool exhausted",
            impact="Checkout fails",
        )
    )
    issue_tracker = MagicMock()
    issue_tracker.create_issue = AsyncMock(
        return_value=IssueResult(status="created", url="https://github.com/acme/shop/issues/7", number=7)
    )
    notifier = MagicMock()
    notifier.notify = AsyncMock()
    return ErrorAnalysisJob(
        store=DatabaseReportStore(session_factory),
        quota=QuotaGate(redis, 10, clock=lambda: NOW),
        analyzer=analyzer,
        issue_tracker=issue_tracker,
        notifier=notifier,
        window_minutes=5,
        clock=lambda: NOW,
    )


async def _all_reports(session_factory) -> list[ErrorReport]:
    async with session_factory() as session:
        result = await session.execute(select(ErrorReport))
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reservation
# ---------------------------------------------------------------------------


class TestReservation:
    @pytest.mark.asyncio
    async def test_second_reserve_in_window_is_duplicate(self, sqlite_session_factory):
        store = DatabaseReportStore(sqlite_session_factory)

        first = await store.reserve(_draft())
        second = await store.reserve(_draft())

        assert first.is_duplicate is False
        assert first.report.id is not None
        assert second.is_duplicate is True

    @pytest.mark.asyncio
    async def test_next_window_reserves_again(self, sqlite_session_factory):
        store = DatabaseReportStore(sqlite_session_factory)

        await store.reserve(_draft(dedupe_window=100))
        later = await store.reserve(_draft(dedupe_window=101))

        assert later.is_duplicate is False
        assert len(await _all_reports(sqlite_session_factory)) == 2


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


class TestDurableJob:
    @pytest.mark.asyncio
    async def test_concurrent_runs_store_one_row(self, sqlite_session_factory, fake_redis, make_event):
        job = _durable_job(sqlite_session_factory, fake_redis)

        results = await asyncio.gather(job.run(make_event()), job.run(make_event()))

        assert sorted(r.outcome for r in results) == [ANALYZED, SKIPPED]
        async with sqlite_session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(ErrorReport))
        assert count == 1
        assert job.analyzer.analyze.await_count == 1
        assert fake_redis.data["error_analyzer:quota:20231114"] == "1"

    @pytest.mark.asyncio
    async def test_row_holds_analysis_and_issue_link(self, sqlite_session_factory, fake_redis, make_event):
        job = _durable_job(sqlite_session_factory, fake_redis)

        await job.run(make_event())

        [row] = await _all_reports(sqlite_session_factory)
        assert row.severity == "high"
        assert row.category == "database"
        assert row.analysis["status"] == "completed"
        assert row.analysis["root_cause"] == "Connection pool exhausted"
        assert row.analysis["github_issue"]["status"] == "created"
        assert row.analysis["github_issue"]["number"] == 7
        assert "token" not in (row.context.get("url") or "")


# ---------------------------------------------------------------------------
# Stale sweep
# ---------------------------------------------------------------------------


class TestStaleSweep:
    @pytest.mark.asyncio
    async def test_marks_only_old_processing_rows(self, sqlite_session_factory):
        store = DatabaseReportStore(sqlite_session_factory)
        stuck = (await store.reserve(_draft("a" * 64, occurred_at=NOW - timedelta(minutes=30)))).report
        fresh = (await store.reserve(_draft("b" * 64, occurred_at=NOW - timedelta(minutes=1)))).report
        done = (await store.reserve(_draft("c" * 64, occurred_at=NOW - timedelta(minutes=30)))).report
        await store.update(done, analysis={"status": "completed", "root_cause": "x"})

        count = await sweep_stale_reports(sqlite_session_factory, timedelta(minutes=5), now=NOW)

        assert count == 1
        by_id = {r.id: r for r in await _all_reports(sqlite_session_factory)}
        assert by_id[stuck.id].analysis["status"] == "failed"
        assert by_id[stuck.id].analysis["error"]["type"] == STALE_ERROR_TYPE
        assert by_id[fresh.id].analysis["status"] == "processing"
        assert by_id[done.id].analysis["status"] == "completed"
