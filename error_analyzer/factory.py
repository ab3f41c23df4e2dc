"""Build the pipeline's stores and collaborators from ``Settings``.

Drivers are picked once here; nothing downstream inspects which variant it
received.
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from error_analyzer.analyzers.base import AiAnalyzer
from error_analyzer.analyzers.null import NullAnalyzer
from error_analyzer.capture import ErrorCapture
from error_analyzer.config import Settings, get_settings, parse_list
from error_analyzer.issue_trackers.base import IssueTracker
from error_analyzer.issue_trackers.null import NullIssueTracker
from error_analyzer.job import ErrorAnalysisJob
from error_analyzer.notifications.base import NotificationChannel
from error_analyzer.notifications.null import NullNotificationChannel
from error_analyzer.quota import QuotaGate
from error_analyzer.storage.base import ReportStore
from error_analyzer.storage.cache import CacheReportStore
from error_analyzer.storage.database import DatabaseReportStore
from error_analyzer.title_generators.base import IssueTitleGenerator
from error_analyzer.title_generators.null import NullIssueTitleGenerator

logger = structlog.get_logger()

DATABASE_STORAGE = "database"
CACHE_STORAGE_DRIVERS = ("cache", "null")


def uses_database_storage(settings: Settings) -> bool:
    return settings.storage_driver == DATABASE_STORAGE


def build_quota_gate(settings: Settings, redis: aioredis.Redis) -> QuotaGate:
    return QuotaGate(redis, settings.daily_limit)


def build_report_store(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None,
    redis: aioredis.Redis,
) -> ReportStore:
    if uses_database_storage(settings):
        if session_factory is None:
            raise ValueError("storage_driver=database requires a session factory")
        return DatabaseReportStore(session_factory)
    if settings.storage_driver in CACHE_STORAGE_DRIVERS:
        return CacheReportStore(redis, settings.dedupe_window_minutes)
    raise ValueError(f"Unknown storage driver: {settings.storage_driver!r}")


def build_analyzer(settings: Settings) -> AiAnalyzer:
    if settings.analyzer_driver == "gemini":
        if not settings.gemini_api_key:
            logger.warning("gemini_analyzer_missing_api_key", fallback="null")
            return NullAnalyzer()
        from error_analyzer.analyzers.gemini import GeminiAnalyzer

        logger.info("registered_analyzer", analyzer="gemini", model=settings.gemini_model)
        return GeminiAnalyzer(
            settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.gemini_temperature,
            max_output_tokens=settings.gemini_max_output_tokens,
            timeout=settings.gemini_timeout_seconds,
        )
    if settings.analyzer_driver != "null":
        logger.warning("unknown_analyzer_driver", driver=settings.analyzer_driver, fallback="null")
    return NullAnalyzer()


def build_title_generator(settings: Settings, quota: QuotaGate) -> IssueTitleGenerator:
    if not settings.github_ai_title_enabled:
        return NullIssueTitleGenerator()
    if not settings.gemini_api_key:
        logger.warning("issue_title_generator_missing_api_key", fallback="null")
        return NullIssueTitleGenerator()
    from error_analyzer.title_generators.gemini import GeminiIssueTitleGenerator

    return GeminiIssueTitleGenerator(
        quota, settings.gemini_api_key, model=settings.github_ai_title_model
    )


def build_issue_tracker(settings: Settings, quota: QuotaGate) -> IssueTracker:
    if settings.issue_tracker_driver == "github":
        from error_analyzer.issue_trackers.github import GitHubIssueTracker

        return GitHubIssueTracker(
            settings.github_token,
            settings.github_repository,
            labels=parse_list(settings.github_labels),
            assignees=parse_list(settings.github_assignees),
            title_generator=build_title_generator(settings, quota),
        )
    if settings.issue_tracker_driver != "null":
        logger.warning("unknown_issue_tracker_driver", driver=settings.issue_tracker_driver, fallback="null")
    return NullIssueTracker()


def build_notifier(settings: Settings) -> NotificationChannel:
    if settings.notification_driver == "slack":
        from error_analyzer.notifications.slack import SlackNotificationChannel

        return SlackNotificationChannel(
            settings.slack_webhook,
            min_severity=settings.slack_min_severity,
            channel=settings.slack_channel,
            username=settings.slack_username,
            icon=settings.slack_icon,
        )
    if settings.notification_driver != "null":
        logger.warning("unknown_notification_driver", driver=settings.notification_driver, fallback="null")
    return NullNotificationChannel()


def build_job(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None,
    redis: aioredis.Redis,
) -> ErrorAnalysisJob:
    quota = build_quota_gate(settings, redis)
    return ErrorAnalysisJob(
        store=build_report_store(settings, session_factory, redis),
        quota=quota,
        analyzer=build_analyzer(settings),
        issue_tracker=build_issue_tracker(settings, quota),
        notifier=build_notifier(settings),
        window_minutes=settings.dedupe_window_minutes,
    )


def build_capture(settings: Settings, job: ErrorAnalysisJob) -> ErrorCapture:
    return ErrorCapture(
        job,
        environment=settings.app_environment,
        enabled_environments=parse_list(settings.enabled_environments),
        excluded_exceptions=parse_list(settings.excluded_exceptions),
        max_attempts=settings.job_max_attempts,
        backoff=settings.backoff_schedule,
        timeout=settings.job_timeout_seconds,
    )


async def create_capture(settings: Settings | None = None) -> ErrorCapture:
    """Wire everything from the default Redis client and database session factory."""
    from error_analyzer.database import get_session_factory
    from error_analyzer.redis import get_redis

    settings = settings or get_settings()
    redis = await get_redis()
    session_factory = get_session_factory() if uses_database_storage(settings) else None
    return build_capture(settings, build_job(settings, session_factory, redis))
