"""Daily quota for AI analysis calls, shared by every worker through Redis."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from error_analyzer.errors import QuotaError, QuotaExceededError, QuotaUnavailableError

logger = structlog.get_logger()

QUOTA_KEY_PREFIX = "error_analyzer:quota"

# Bound on both how long the lock is held and how long we wait for it
LOCK_TIMEOUT_SECONDS = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaGate:
    """Per-UTC-day counter with an atomic check-and-increment.

    The read-compare-write runs under a short Redis lock scoped to the day's
    key, so concurrent workers in different processes never push the count
    past ``daily_limit``. When the lock cannot be taken the call fails
    closed instead of risking a double spend.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        daily_limit: int,
        *,
        key_prefix: str = QUOTA_KEY_PREFIX,
        lock_timeout: float = LOCK_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._redis = redis
        self.daily_limit = daily_limit
        self.key_prefix = key_prefix
        self.lock_timeout = lock_timeout
        self._clock = clock

    def _key(self, now: datetime) -> str:
        return f"{self.key_prefix}:{now:%Y%m%d}"

    @staticmethod
    def _end_of_day(now: datetime) -> int:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return int((midnight + timedelta(days=1)).timestamp())

    async def consume(self) -> None:
        """Take one unit of today's quota.

        Raises ``QuotaExceededError`` when none is left and
        ``QuotaUnavailableError`` when the counter cannot be checked.
        """
        now = self._clock()
        key = self._key(now)
        lock = self._redis.lock(
            f"{key}:lock",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )

        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.warning("quota_lock_error", key=key, error=str(e))
            raise QuotaUnavailableError(f"Quota lock error: {e}") from e
        if not acquired:
            logger.warning("quota_lock_unavailable", key=key)
            raise QuotaUnavailableError(f"Quota lock not acquired within {self.lock_timeout}s")

        try:
            count = int(await self._redis.get(key) or 0)
            if count >= self.daily_limit:
                logger.info("quota_exhausted", key=key, count=count, limit=self.daily_limit)
                raise QuotaExceededError(self.daily_limit)
            await self._redis.set(key, count + 1, exat=self._end_of_day(now))
        except RedisError as e:
            logger.warning("quota_update_error", key=key, error=str(e))
            raise QuotaUnavailableError(f"Quota update error: {e}") from e
        finally:
            try:
                await lock.release()
            except RedisError as e:
                # Lock expired under us; the write above already happened or didn't
                logger.warning("quota_lock_release_error", key=key, error=str(e))

    async def try_consume(self) -> bool:
        """Like ``consume`` but returns False instead of raising."""
        try:
            await self.consume()
        except QuotaError:
            return False
        return True

    async def today_count(self) -> int:
        """Number of analysis calls spent today."""
        return int(await self._redis.get(self._key(self._clock())) or 0)

    async def remaining(self) -> int:
        """Advisory remaining quota; not part of the locked section."""
        return max(0, self.daily_limit - await self.today_count())

    async def reset(self) -> None:
        """Clear today's counter (operational recovery only)."""
        key = self._key(self._clock())
        await self._redis.delete(key)
        logger.info("quota_reset", key=key)
