"""PII scrubbing for error context and stack traces.

Everything that leaves the process (database rows, AI prompts, GitHub issues,
Slack messages) goes through these two functions first. Neither may raise:
they run upstream of every persistence and network call.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

ALLOWED_CONTEXT_KEYS = ("environment", "timestamp", "url", "user_id")

MAX_TRACE_LENGTH = 10_000
TRUNCATION_MARKER = "\n... (truncated)"

# Order matters: specific token shapes first so they get a descriptive label,
# then the generic hex rule picks up whatever is left.
_TRACE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"(Authorization\s*:\s*Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
        r"\1[BEARER_TOKEN_MASKED]",
    ),
    (
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "[EMAIL_MASKED]",
    ),
    (
        re.compile(r"\beyJ[A-Za-z0-9_-]{5,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\b"),
        "[JWT_MASKED]",
    ),
    (
        re.compile(r"\bsk_(?:live|test)_[A-Za-z0-9]{8,}\b"),
        "[API_KEY_MASKED]",
    ),
    (
        re.compile(r"\b[0-9a-fA-F]{32,}\b"),
        "[TOKEN_MASKED]",
    ),
    (
        re.compile(
            r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b"
        ),
        "[UUID_MASKED]",
    ),
)


def _strip_url(value: str) -> str:
    """Keep scheme, host and path; drop credentials, query and fragment."""
    try:
        parts = urlsplit(value)
        host = parts.hostname or ""
        if parts.port is not None:
            host = f"{host}:{parts.port}"
    except ValueError:
        # Unparseable (e.g. bad port); the raw value may still hold a query string
        return value.split("?", 1)[0].split("#", 1)[0]
    return f"{parts.scheme or 'https'}://{host}{parts.path or '/'}"


def sanitize_context(context: object) -> dict:
    """Project ``context`` onto the allow-listed keys.

    Unknown keys are dropped unconditionally, so new fields added by callers
    never leak by default.
    """
    if not isinstance(context, dict):
        return {}

    sanitized: dict = {}
    for key in ALLOWED_CONTEXT_KEYS:
        value = context.get(key)
        if value is None:
            continue
        if key == "url" and isinstance(value, str):
            value = _strip_url(value)
        sanitized[key] = value
    return sanitized


def sanitize_trace(trace: object) -> str:
    """Mask secrets and personal data in a stack trace, then cap its length."""
    if trace is None:
        return ""
    if isinstance(trace, str):
        text = trace
    else:
        try:
            text = str(trace)
        except Exception:
            return ""

    for pattern, replacement in _TRACE_RULES:
        text = pattern.sub(replacement, text)

    # Truncate last so a token cut in half at the boundary is already masked
    if len(text) > MAX_TRACE_LENGTH:
        text = text[:MAX_TRACE_LENGTH] + TRUNCATION_MARKER
    return text
