from error_analyzer.storage.base import (
    PROCESSING_STATUS,
    ReportDraft,
    ReportStore,
    Reservation,
)
from error_analyzer.storage.cache import CacheReportStore
from error_analyzer.storage.database import DatabaseReportStore

__all__ = [
    "PROCESSING_STATUS",
    "CacheReportStore",
    "DatabaseReportStore",
    "ReportDraft",
    "ReportStore",
    "Reservation",
]
