"""Issue title generator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from error_analyzer.models.error_report import ErrorReport


class IssueTitleGenerator(ABC):
    """Suggests the human-readable part of an issue title."""

    @abstractmethod
    async def generate_title_suffix(
        self,
        report: ErrorReport,
        analysis: dict,
        sanitized_context: dict,
    ) -> str | None:
        """Return the text that follows the ``[Error][SEVERITY] Type: `` prefix.

        ``None`` means "no suggestion"; the issue tracker then builds a
        rule-based title. Implementations may raise; the tracker treats that
        the same as ``None``.
        """
        ...
