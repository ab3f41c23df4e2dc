"""Housekeeping for the ``error_reports`` table."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from error_analyzer.models.error_report import (
    PLACEHOLDER_CATEGORY,
    PLACEHOLDER_SEVERITY,
    ErrorReport,
)
from error_analyzer.storage.base import PROCESSING_STATUS

logger = structlog.get_logger()

# Longer than a job can hold a reservation: 3 attempts x 60s plus 15s of backoff
STALE_AFTER = timedelta(minutes=5)
STALE_ERROR_TYPE = "StaleReservation"


async def sweep_stale_reports(
    session_factory: async_sessionmaker[AsyncSession],
    older_than: timedelta = STALE_AFTER,
    now: datetime | None = None,
) -> int:
    """Mark reports stuck in ``processing`` as failed. Returns how many were marked.

    A report stays in ``processing`` only when its job died between
    reservation and completion. It is not re-analyzed.
    """
    now = now or datetime.now(timezone.utc)
    threshold = now - older_than

    async with session_factory() as session:
        result = await session.execute(
            select(ErrorReport).where(
                ErrorReport.analysis["status"].as_string() == PROCESSING_STATUS,
                ErrorReport.occurred_at < threshold,
            )
        )
        reports = [
            r for r in result.scalars().all()
            if r.analysis_status == PROCESSING_STATUS
        ]

        for report in reports:
            report.severity = PLACEHOLDER_SEVERITY
            report.category = PLACEHOLDER_CATEGORY
            report.analysis = {
                "status": "failed",
                "error": {
                    "type": STALE_ERROR_TYPE,
                    "message": f"Still processing after {int(older_than.total_seconds())}s",
                    "occurred_at": now.isoformat(),
                },
            }
            logger.warning(
                "stale_report_marked_failed",
                report_id=str(report.id),
                fingerprint=report.fingerprint,
            )

        if reports:
            await session.commit()

    return len(reports)


async def cleanup_old_reports(
    session_factory: async_sessionmaker[AsyncSession],
    days: int,
    dry_run: bool = False,
    now: datetime | None = None,
) -> int:
    """Delete reports that occurred more than ``days`` days ago.

    With ``dry_run`` the matching reports are only counted.
    """
    if days < 1:
        raise ValueError("days must be at least 1")

    now = now or datetime.now(timezone.utc)
    threshold = now - timedelta(days=days)

    async with session_factory() as session:
        count = await session.scalar(
            select(func.count()).select_from(ErrorReport).where(ErrorReport.occurred_at < threshold)
        )
        count = int(count or 0)

        if dry_run or count == 0:
            logger.info("error_reports_cleanup", matched=count, deleted=0, dry_run=dry_run)
            return count

        await session.execute(delete(ErrorReport).where(ErrorReport.occurred_at < threshold))
        await session.commit()

    logger.info("error_reports_cleanup", matched=count, deleted=count, dry_run=False)
    return count
