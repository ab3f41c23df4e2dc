"""SQLAlchemy models."""

from error_analyzer.models.base import Base
from error_analyzer.models.error_report import ErrorReport

__all__ = [
    "Base",
    "ErrorReport",
]
