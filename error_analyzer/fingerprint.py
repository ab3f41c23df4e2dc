"""Error fingerprinting and dedupe window bucketing."""

from __future__ import annotations

import hashlib

DEFAULT_WINDOW_MINUTES = 5


def compute_fingerprint(exception_type: str, file: str, line: int) -> str:
    """SHA-256 hex digest identifying an error by its type and raise location.

    Different messages raised from the same line collapse into one fingerprint.
    """
    data = f"{exception_type}:{file}:{int(line)}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def compute_dedupe_window(timestamp: float, window_minutes: int = DEFAULT_WINDOW_MINUTES) -> int:
    """Return the UTC-aligned bucket number ``timestamp`` falls into."""
    if window_minutes <= 0:
        raise ValueError(f"window_minutes must be positive, got {window_minutes}")
    return int(timestamp // (window_minutes * 60))
