"""Analysis and issue-tracker result schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

SEVERITY_LEVELS: dict[str, int] = {"low": 1, "medium": 2, "high": 3, "critical": 4}

IssueStatus = Literal[
    "disabled",
    "created",
    "missing_config",
    "unauthorized",
    "forbidden",
    "repository_not_found",
    "validation_failed",
    "rate_limited",
    "request_failed",
]


class AnalysisResult(BaseModel):
    """Provider-agnostic diagnosis of an error.

    Every field is advisory text. Values the provider gets wrong are
    normalised rather than rejected: an unknown severity becomes ``medium``
    and an empty category becomes ``other``. Extra keys are preserved.
    """

    model_config = ConfigDict(extra="allow")

    severity: str = "medium"
    category: str = "other"
    root_cause: str = ""
    impact: str = ""
    immediate_action: str = ""
    recommended_fix: str = ""
    similar_issues: list[str] = []
    prevention: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _normalise_severity(cls, v: object) -> str:
        severity = str(v or "").strip().lower()
        return severity if severity in SEVERITY_LEVELS else "medium"

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, v: object) -> str:
        return str(v or "").strip().lower() or "other"

    @field_validator(
        "root_cause", "impact", "immediate_action", "recommended_fix", "prevention",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, v: object) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("similar_issues", mode="before")
    @classmethod
    def _coerce_list(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return [str(v)]


class IssueResult(BaseModel):
    """Outcome of an issue-tracker call. Failures are statuses, never exceptions."""

    status: IssueStatus
    url: str | None = None
    number: int | None = None
    message: str | None = None

    def as_dict(self) -> dict:
        return self.model_dump(exclude_none=True)
