"""Report store interface.

A store reserves a report for ``(fingerprint, dedupe_window)`` before the
expensive AI call runs, then records what the analysis produced. The two
implementations (database and cache) behave the same for callers; only the
database one can be queried afterwards.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from error_analyzer.models.error_report import (
    PLACEHOLDER_CATEGORY,
    PLACEHOLDER_SEVERITY,
    ErrorReport,
)

PROCESSING_STATUS = "processing"


@dataclass(frozen=True)
class ReportDraft:
    """Sanitized attributes of a report that has not been reserved yet."""

    exception_class: str
    message: str
    file: str
    line: int
    fingerprint: str
    dedupe_window: int
    trace: str
    occurred_at: datetime
    context: dict[str, Any] = field(default_factory=dict)

    def to_report(self) -> ErrorReport:
        """Build the placeholder report in the Reserved state."""
        return ErrorReport(
            exception_class=self.exception_class,
            message=self.message,
            file=self.file,
            line=self.line,
            fingerprint=self.fingerprint,
            dedupe_window=self.dedupe_window,
            trace=self.trace,
            severity=PLACEHOLDER_SEVERITY,
            category=PLACEHOLDER_CATEGORY,
            analysis={"status": PROCESSING_STATUS},
            context=dict(self.context),
            occurred_at=self.occurred_at,
        )


@dataclass(frozen=True)
class Reservation:
    """Result of ``ReportStore.reserve``: the claimed report, or a duplicate."""

    status: Literal["reserved", "duplicate"]
    report: ErrorReport | None = None

    @classmethod
    def reserved(cls, report: ErrorReport) -> Reservation:
        return cls(status="reserved", report=report)

    @classmethod
    def duplicate(cls) -> Reservation:
        return cls(status="duplicate")

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


def apply_fields(report: ErrorReport, fields: dict[str, Any]) -> None:
    for name, value in fields.items():
        setattr(report, name, value)


class ReportStore(ABC):
    """Reserve-then-update lifecycle for error reports."""

    #: Whether reports can be read back after the job finishes.
    persistent: bool = False

    @abstractmethod
    async def reserve(self, draft: ReportDraft) -> Reservation:
        """Atomically claim ``(fingerprint, dedupe_window)``.

        Exactly one concurrent caller gets ``reserved``; the rest get
        ``duplicate``. Any other failure raises ``ReportStoreError``.
        """

    @abstractmethod
    async def update(self, report: ErrorReport, **fields: Any) -> None:
        """Apply ``fields`` to ``report`` and persist them where supported."""
