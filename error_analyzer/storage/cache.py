"""Ephemeral report store: Redis only remembers which windows were claimed."""

from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from error_analyzer.errors import ReportStoreError
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.storage.base import (
    ReportDraft,
    ReportStore,
    Reservation,
    apply_fields,
)

logger = structlog.get_logger()

DEDUPE_KEY_PREFIX = "error_analyzer:dedupe"

# Absorbs skew between the window bucket boundary and key expiry
DEDUPE_GRACE_SECONDS = 60


def dedupe_key(fingerprint: str, dedupe_window: int) -> str:
    return f"{DEDUPE_KEY_PREFIX}:{fingerprint}:{dedupe_window}"


class CacheReportStore(ReportStore):
    """Reservation via ``SET NX EX``; reports live in memory for one job only."""

    persistent = False

    def __init__(self, redis: aioredis.Redis, window_minutes: int):
        self._redis = redis
        self.window_minutes = window_minutes

    @property
    def ttl_seconds(self) -> int:
        return self.window_minutes * 60 + DEDUPE_GRACE_SECONDS

    async def reserve(self, draft: ReportDraft) -> Reservation:
        key = dedupe_key(draft.fingerprint, draft.dedupe_window)
        try:
            added = await self._redis.set(key, "1", nx=True, ex=self.ttl_seconds)
        except RedisError as e:
            raise ReportStoreError(f"Failed to reserve dedupe key {key}: {e}") from e

        if not added:
            logger.info(
                "duplicate_error_skipped",
                exception=draft.exception_class,
                file=draft.file,
                line=draft.line,
                fingerprint=draft.fingerprint,
            )
            return Reservation.duplicate()

        return Reservation.reserved(draft.to_report())

    async def update(self, report: ErrorReport, **fields: Any) -> None:
        apply_fields(report, fields)
