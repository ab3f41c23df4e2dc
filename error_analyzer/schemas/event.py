"""Inbound error event schema."""

from __future__ import annotations

import traceback
from typing import Any

from pydantic import BaseModel


def qualified_name(cls: type) -> str:
    """``module.QualName`` for a class, bare name for builtins."""
    module = cls.__module__
    if module == "builtins":
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


class ErrorEvent(BaseModel):
    """A single error occurrence as handed to the analysis job.

    ``trace`` and ``context`` are raw here; the job sanitizes them before
    anything is stored or sent out.
    """

    exception_type: str
    message: str
    file: str
    line: int
    trace: str = ""
    context: dict[str, Any] = {}

    @classmethod
    def from_exception(cls, exc: BaseException, context: dict[str, Any] | None = None) -> ErrorEvent:
        """Build an event from a live exception, located at its innermost frame."""
        tb = exc.__traceback__
        file, line = "unknown", 0
        if tb is not None:
            while tb.tb_next is not None:
                tb = tb.tb_next
            file = tb.tb_frame.f_code.co_filename
            line = tb.tb_lineno

        return cls(
            exception_type=qualified_name(type(exc)),
            message=str(exc),
            file=file,
            line=line,
            trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            context=dict(context or {}),
        )
