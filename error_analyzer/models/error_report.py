"""Error report model: one row per fingerprint per dedupe window."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    Select,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column

from error_analyzer.models.base import Base

# Placeholder values written at reservation time and on failed analysis
PLACEHOLDER_SEVERITY = "medium"
PLACEHOLDER_CATEGORY = "other"


class ErrorReport(Base):
    __tablename__ = "error_reports"
    __table_args__ = (
        # Reservation atomicity: a second insert for the same window is a duplicate
        UniqueConstraint("fingerprint", "dedupe_window", name="uq_error_reports_fingerprint_window"),
        Index("ix_error_reports_occurred_at", "occurred_at"),
        Index("ix_error_reports_severity", "severity"),
        Index("ix_error_reports_category", "category"),
        Index("ix_error_reports_severity_occurred_at", "severity", "occurred_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)

    # What failed
    exception_class: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    file: Mapped[str] = mapped_column(String(1024))
    line: Mapped[int] = mapped_column(Integer)
    trace: Mapped[str] = mapped_column(Text)  # sanitized

    # Identity
    fingerprint: Mapped[str] = mapped_column(String(64))
    dedupe_window: Mapped[int] = mapped_column(Integer)

    # Analysis
    severity: Mapped[str] = mapped_column(String(20), default=PLACEHOLDER_SEVERITY)  # low | medium | high | critical
    category: Mapped[str] = mapped_column(String(50), default=PLACEHOLDER_CATEGORY)
    analysis: Mapped[dict] = mapped_column(JSON)  # {"status": "processing" | "completed" | "failed", ...}
    context: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)  # sanitized

    # Lifecycle
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def analysis_status(self) -> str | None:
        return (self.analysis or {}).get("status")

    @property
    def root_cause(self) -> str | None:
        return (self.analysis or {}).get("root_cause")

    @property
    def recommended_fix(self) -> str | None:
        return (self.analysis or {}).get("recommended_fix")

    @property
    def short_exception_class(self) -> str:
        """Class name without its module path."""
        return self.exception_class.rsplit(".", 1)[-1]

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    @classmethod
    def unresolved(cls) -> Select:
        return select(cls).where(cls.resolved_at.is_(None))

    @classmethod
    def critical(cls) -> Select:
        return select(cls).where(cls.severity == "critical")

    @classmethod
    def recent(cls, days: int = 7) -> Select:
        threshold = datetime.now(timezone.utc) - timedelta(days=days)
        return select(cls).where(cls.occurred_at > threshold)
