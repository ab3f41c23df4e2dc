"""Durable report store backed by the ``error_reports`` table."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from error_analyzer.errors import ReportStoreError
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.storage.base import (
    ReportDraft,
    ReportStore,
    Reservation,
    apply_fields,
)

logger = structlog.get_logger()

_UNIQUE_VIOLATION_SQLSTATE = "23505"
_MYSQL_DUPLICATE_ENTRY = 1062

# Driver messages for a unique violation, for drivers without an error code attribute
_UNIQUE_VIOLATION_MESSAGES = (
    "unique constraint failed",  # sqlite
    "duplicate key value violates unique constraint",  # postgres
    "duplicate entry",  # mysql
)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a unique-constraint violation apart from other integrity errors."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code == _UNIQUE_VIOLATION_SQLSTATE:
            return True

    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_DUPLICATE_ENTRY:
        return True

    text = str(orig).lower()
    return any(marker in text for marker in _UNIQUE_VIOLATION_MESSAGES)


class DatabaseReportStore(ReportStore):
    """Reservation via INSERT under the ``(fingerprint, dedupe_window)`` unique constraint."""

    persistent = True

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def reserve(self, draft: ReportDraft) -> Reservation:
        report = draft.to_report()
        try:
            async with self.session_factory() as session:
                session.add(report)
                await session.commit()
        except IntegrityError as e:
            if is_unique_violation(e):
                logger.info(
                    "duplicate_error_skipped",
                    exception=draft.exception_class,
                    file=draft.file,
                    line=draft.line,
                    fingerprint=draft.fingerprint,
                )
                return Reservation.duplicate()
            raise ReportStoreError(f"Failed to reserve error report: {e}") from e
        except (SQLAlchemyError, OSError) as e:
            raise ReportStoreError(f"Failed to reserve error report: {e}") from e

        logger.debug("error_report_reserved", report_id=str(report.id), fingerprint=draft.fingerprint)
        return Reservation.reserved(report)

    async def update(self, report: ErrorReport, **fields: Any) -> None:
        apply_fields(report, fields)
        try:
            async with self.session_factory() as session:
                await session.execute(
                    sql_update(ErrorReport)
                    .where(ErrorReport.id == report.id)
                    .values(**fields)
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise ReportStoreError(f"Failed to update error report {report.id}: {e}") from e
