"""Admin CLI for the error analyzer."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import click
import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

TEST_ERROR_TYPES = ("runtime", "query", "unexpected")
TEST_CONTEXT = {
    "url": "cli://test-analysis",
    "user_id": "cli",
    "ip": "127.0.0.1",
    "user_agent": "CLI Test Command",
}


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Error analyzer administration CLI."""
    pass


def _database_storage_enabled() -> bool:
    from error_analyzer.config import get_settings
    from error_analyzer.factory import uses_database_storage

    return uses_database_storage(get_settings())


# --- Quota ---


@cli.group()
def quota():
    """Daily AI analysis quota."""
    pass


@quota.command("show")
def show_quota():
    """Show today's usage and remaining quota."""
    run_async(_show_quota())


async def _show_quota():
    from error_analyzer.config import get_settings
    from error_analyzer.factory import build_quota_gate
    from error_analyzer.redis import close_redis, get_redis

    settings = get_settings()
    gate = build_quota_gate(settings, await get_redis())
    try:
        used = await gate.today_count()
        remaining = await gate.remaining()
        click.echo(f"Used: {used} / {gate.daily_limit} | Remaining: {remaining}")
    finally:
        await close_redis()


@quota.command("reset")
@click.confirmation_option(prompt="Reset today's analysis quota?")
def reset_quota():
    """Clear today's quota counter."""
    run_async(_reset_quota())


async def _reset_quota():
    from error_analyzer.config import get_settings
    from error_analyzer.factory import build_quota_gate
    from error_analyzer.redis import close_redis, get_redis

    gate = build_quota_gate(get_settings(), await get_redis())
    try:
        await gate.reset()
        click.echo("Quota reset.")
    finally:
        await close_redis()


# --- Reports ---


@cli.group()
def reports():
    """Stored error report commands."""
    pass


@reports.command("cleanup")
@click.option("--days", type=int, default=None, help="Delete reports older than this (default: cleanup_days)")
@click.option("--dry-run", is_flag=True, help="Only count what would be deleted")
def cleanup_reports(days, dry_run):
    """Delete old error reports."""
    from error_analyzer.config import get_settings

    if not _database_storage_enabled():
        click.echo("Database storage is disabled; no error reports are stored.")
        return

    days = days if days is not None else get_settings().cleanup_days
    if days < 1:
        raise click.BadParameter("must be at least 1", param_hint="--days")

    count = run_async(_cleanup_reports(days, dry_run))
    if count == 0:
        click.echo("No error reports to delete.")
    elif dry_run:
        click.echo(f"{count} error report(s) older than {days} day(s) would be deleted.")
    else:
        click.echo(f"Deleted {count} error report(s) older than {days} day(s).")


async def _cleanup_reports(days: int, dry_run: bool) -> int:
    from error_analyzer.database import close_engine, get_session_factory
    from error_analyzer.maintenance import cleanup_old_reports

    try:
        return await cleanup_old_reports(get_session_factory(), days, dry_run=dry_run)
    finally:
        await close_engine()


@reports.command("sweep-stale")
@click.option("--minutes", type=int, default=5, help="Age after which a processing report is stale")
def sweep_stale(minutes):
    """Mark reports stuck in processing as failed."""
    if not _database_storage_enabled():
        click.echo("Database storage is disabled; no error reports are stored.")
        return
    if minutes < 1:
        raise click.BadParameter("must be at least 1", param_hint="--minutes")

    count = run_async(_sweep_stale(minutes))
    click.echo(f"Marked {count} stale report(s) as failed.")


async def _sweep_stale(minutes: int) -> int:
    from error_analyzer.database import close_engine, get_session_factory
    from error_analyzer.maintenance import sweep_stale_reports

    try:
        return await sweep_stale_reports(get_session_factory(), timedelta(minutes=minutes))
    finally:
        await close_engine()


def _echo_report(report) -> None:
    analysis = report.analysis or {}
    click.echo(f"ID: {report.id}")
    click.echo(f"Exception: {report.exception_class}")
    click.echo(f"Message: {report.message}")
    click.echo(f"Location: {report.file}:{report.line}")
    click.echo(f"Severity: {report.severity} | Category: {report.category}")
    click.echo(f"Fingerprint: {report.fingerprint}")
    click.echo(f"Status: {analysis.get('status', 'unknown')}")
    for key in ("root_cause", "impact", "immediate_action", "recommended_fix", "prevention"):
        if analysis.get(key):
            click.echo(f"\n[{key}]\n{analysis[key]}")
    if "error" in analysis:
        click.echo(f"\n[error]\n{analysis['error'].get('type')}: {analysis['error'].get('message')}")
    issue = analysis.get("github_issue")
    if issue:
        click.echo(f"\n[issue] {issue.get('status')} {issue.get('url') or ''}".rstrip())
    if report.context:
        click.echo("\n[context]\n" + json.dumps(report.context, indent=2, ensure_ascii=False))


# --- Test analysis ---


def make_test_exception(error_type: str) -> Exception:
    """Raise and catch a synthetic exception so it carries a real traceback."""
    from sqlalchemy.exc import ProgrammingError

    try:
        if error_type == "runtime":
            raise RuntimeError("Test RuntimeError raised on purpose to exercise error analysis.")
        if error_type == "query":
            raise ProgrammingError(
                "SELECT * FROM non_existent_table",
                {},
                Exception('relation "non_existent_table" does not exist'),
            )
        if error_type == "unexpected":
            raise ValueError("Test ValueError: an unexpected value was detected.")
        raise click.BadParameter(f"unknown error type: {error_type}", param_hint="--type")
    except click.BadParameter:
        raise
    except Exception as e:
        return e


@cli.command("test-analysis")
@click.option("--type", "error_type", type=click.Choice(TEST_ERROR_TYPES), default="runtime")
def test_analysis(error_type):
    """Run one synthetic error through the analysis job and print the result."""
    run_async(_test_analysis(error_type))


async def _test_analysis(error_type: str):
    from error_analyzer.config import get_settings
    from error_analyzer.database import close_engine, get_session_factory
    from error_analyzer.factory import build_job, uses_database_storage
    from error_analyzer.redis import close_redis, get_redis
    from error_analyzer.schemas.event import ErrorEvent

    settings = get_settings()
    database = uses_database_storage(settings)
    job = build_job(settings, get_session_factory() if database else None, await get_redis())

    exc = make_test_exception(error_type)
    click.echo(f"Exception: {type(exc).__name__}: {exc}")
    click.echo(f"Remaining quota: {await job.quota.remaining()} / {job.quota.daily_limit}")

    context = {**TEST_CONTEXT, "environment": settings.app_environment}
    try:
        result = await job.run(ErrorEvent.from_exception(exc, context))
    finally:
        await job.issue_tracker.close()
        await close_redis()
        if database:
            await close_engine()

    click.echo(f"Outcome: {result.outcome}")
    if result.report is not None:
        if not job.store.persistent:
            click.echo("Database storage is disabled; the report was not stored.")
        _echo_report(result.report)


if __name__ == "__main__":
    cli()
