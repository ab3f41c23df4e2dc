"""Entry point for application code that wants an error analyzed.

Usage (fire-and-forget from async code)::

    capture = await create_capture()
    try:
        ...
    except Exception as e:
        capture.capture(e, {"url": request.url, "user_id": user.id})

``capture()`` never raises into the caller. Enrichment outcomes are only
visible on the stored report and in the logs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence

import structlog

from error_analyzer.job import ErrorAnalysisJob, JobResult
from error_analyzer.schemas.event import ErrorEvent, qualified_name

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = (5.0, 10.0, 20.0)
DEFAULT_TIMEOUT_SECONDS = 60.0


async def run_with_retry(
    job: ErrorAnalysisJob,
    event: ErrorEvent,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff: Sequence[float] = DEFAULT_BACKOFF_SECONDS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> JobResult:
    """Run ``job`` with bounded attempts, increasing backoff and a per-attempt timeout.

    Only infrastructure failures and timeouts escape ``job.run``. A retry after
    a successful reservation hits the duplicate check and skips, so retries
    never re-spend quota.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await asyncio.wait_for(job.run(event), timeout=timeout)
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(
                    "error_analysis_job_gave_up",
                    attempts=attempt,
                    exception=type(e).__name__,
                    error=str(e),
                )
                raise
            delay = backoff[min(attempt - 1, len(backoff) - 1)] if backoff else 0.0
            logger.warning(
                "error_analysis_job_retry",
                attempt=attempt,
                max_attempts=max_attempts,
                next_backoff_seconds=delay,
                exception=type(e).__name__,
                error=str(e),
            )
            await sleep(delay)


class ErrorCapture:
    """Filters incoming exceptions and runs the analysis job for the rest."""

    def __init__(
        self,
        job: ErrorAnalysisJob,
        *,
        environment: str | None = None,
        enabled_environments: Iterable[str] = ("production",),
        excluded_exceptions: Iterable[str] = (),
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: Sequence[float] = DEFAULT_BACKOFF_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.job = job
        self.environment = environment
        self.enabled_environments = set(enabled_environments)
        self.excluded_exceptions = set(excluded_exceptions)
        self.max_attempts = max_attempts
        self.backoff = tuple(backoff)
        self.timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    def is_excluded(self, exc: BaseException) -> bool:
        """True if the exception or any of its base classes is on the exclude list.

        Entries match either the bare class name or the qualified name.
        """
        for cls in type(exc).__mro__:
            if cls.__name__ in self.excluded_exceptions:
                return True
            if qualified_name(cls) in self.excluded_exceptions:
                return True
        return False

    def should_capture(self, exc: BaseException, context: dict) -> bool:
        environment = context.get("environment")
        if self.enabled_environments and environment not in self.enabled_environments:
            logger.debug("error_capture_skipped", reason="environment", environment=environment)
            return False
        if self.is_excluded(exc):
            logger.debug("error_capture_skipped", reason="excluded", exception=type(exc).__name__)
            return False
        return True

    async def process(self, exc: BaseException, context: dict | None = None) -> JobResult | None:
        """Filter and run the job in the current task.

        Returns ``None`` when the exception was filtered out. Raises once the
        retry budget is exhausted.
        """
        context = dict(context or {})
        if self.environment and "environment" not in context:
            context["environment"] = self.environment

        if not self.should_capture(exc, context):
            return None

        event = ErrorEvent.from_exception(exc, context)
        return await run_with_retry(
            self.job,
            event,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            timeout=self.timeout,
        )

    async def _process_safely(self, exc: BaseException, context: dict | None) -> JobResult | None:
        try:
            return await self.process(exc, context)
        except Exception:
            # Never let error capturing crash the caller.
            logger.warning("error_capture_failed", exc_info=True)
            return None

    def capture(self, exc: BaseException, context: dict | None = None) -> asyncio.Task | None:
        """Schedule analysis in the background. Safe to call from any except block."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("error_capture_no_event_loop", exception=type(exc).__name__)
            return None
        task = loop.create_task(self._process_safely(exc, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled capture to finish (e.g. on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
