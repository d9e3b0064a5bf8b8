"""
Cronwatch CLI - run the server and one-off maintenance tasks.

Usage:
    cronwatch --help              Show all commands
    cronwatch serve               Run the API, Slack endpoints and scheduler
    cronwatch check               Run one health tick (pages on new anomalies)
    cronwatch check --dry-run     Print anomalies without alerting
    cronwatch digest              Print today's run counts
    cronwatch digest --post       Post the digest to the configured channel
    cronwatch report JOB STATUS   Record a run from a shell wrapper
    cronwatch seed-admins         Apply the config.yml admin seed
"""

import asyncio

import typer

app = typer.Typer(
    name="cronwatch",
    help="Cronwatch CLI - cron job monitoring with Slack alerts",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the HTTP server (REST API, Slack endpoints, webhook, scheduler)."""
    import uvicorn

    uvicorn.run("cronwatch.main:app", host=host, port=port, reload=reload)


@app.command()
def check(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Evaluate only, send nothing"),
):
    """Evaluate job health once."""
    from cronwatch.core.logging import setup_logging

    setup_logging()
    code = asyncio.run(_check(dry_run))
    raise typer.Exit(code)


async def _check(dry_run: bool) -> int:
    from cronwatch.config import get_config
    from cronwatch.core.database import AsyncSessionLocal
    from cronwatch.services.health import evaluate_health
    from cronwatch.services.monitor import HealthMonitor
    from cronwatch.services.notifications import SlackNotifier

    if dry_run:
        async with AsyncSessionLocal() as db:
            anomalies = await evaluate_health(db)
    else:
        monitor = HealthMonitor(AsyncSessionLocal, SlackNotifier(), get_config())
        result = await monitor.run_tick()
        if result.error:
            _print_error(f"Tick failed: {result.error}")
            return 2
        anomalies = result.anomalies

    if not anomalies:
        _print_success("All active jobs healthy")
        return 0

    for anomaly in anomalies:
        _print_warning(f"[{anomaly.severity.value}] {anomaly.job_name} {anomaly.kind.value}: {anomaly.detail}")
    return 1


@app.command()
def digest(
    post: bool = typer.Option(False, "--post", help="Post to the configured digest channel"),
):
    """Show (or post) run counts since local midnight."""
    from cronwatch.core.logging import setup_logging

    setup_logging()
    asyncio.run(_digest(post))


async def _digest(post: bool) -> None:
    from cronwatch.config import get_config
    from cronwatch.core.database import AsyncSessionLocal
    from cronwatch.services.digest import build_digest, post_daily_digest
    from cronwatch.services.notifications import SlackNotifier

    config = get_config()
    async with AsyncSessionLocal() as db:
        if post:
            if await post_daily_digest(db, SlackNotifier(), config.digest):
                _print_success(f"Digest posted to {config.digest.channel}")
            else:
                _print_error("Digest not posted (no digest channel configured, or Slack error)")
                raise typer.Exit(1)
            return

        since, rows = await build_digest(db, timezone=config.digest.timezone)

    typer.echo(f"Runs since {since:%Y-%m-%d %H:%M} UTC")
    if not rows:
        typer.echo("  (none)")
    for row in rows:
        typer.echo(f"  {row.job_name:<40} {row.status.value:<8} {row.count}")


@app.command()
def report(
    job_name: str = typer.Argument(..., help="Registered job name"),
    status: str = typer.Argument(..., help="started, success or failed"),
    message: str | None = typer.Option(None, "--message", "-m", help="Free-form message"),
    duration: float | None = typer.Option(None, "--duration", "-d", help="Duration in seconds"),
    triggered_by: str | None = typer.Option(None, "--triggered-by", help="Who started the run"),
):
    """Record a run directly in the ledger (for wrappers on the same host)."""
    from cronwatch.core.logging import setup_logging

    setup_logging()
    if status not in ("started", "success", "failed"):
        _print_error("status must be one of: started, success, failed")
        raise typer.Exit(2)
    asyncio.run(_report(job_name, status, message, duration, triggered_by))


async def _report(
    job_name: str,
    status: str,
    message: str | None,
    duration: float | None,
    triggered_by: str | None,
) -> None:
    from cronwatch.config import get_config
    from cronwatch.core.database import AsyncSessionLocal
    from cronwatch.core.errors import UnknownJob
    from cronwatch.models.run import RunStatus
    from cronwatch.services.alerts import AlertDispatcher
    from cronwatch.services.ledger import append_run
    from cronwatch.services.notifications import SlackNotifier
    from cronwatch.services.registry import require_job

    async with AsyncSessionLocal() as db:
        try:
            run = await append_run(db, job_name, RunStatus(status), message, duration, triggered_by)
        except UnknownJob as e:
            _print_error(str(e))
            raise typer.Exit(1) from e

        if run.status == RunStatus.FAILED:
            dispatcher = AlertDispatcher(SlackNotifier(), get_config().alerts)
            await dispatcher.notify_failed_run(db, await require_job(db, job_name), run)

        await db.commit()

    _print_success(f"Recorded run #{run.id} ({status}) for {job_name}")


@app.command("seed-admins")
def seed_admins_command():
    """Apply the config.yml admin seed (only when no admins exist yet)."""
    from cronwatch.core.logging import setup_logging

    setup_logging()
    count = asyncio.run(_seed_admins())
    if count:
        _print_success(f"Seeded {count} admins")
    else:
        _print_warning("Admins already exist or none configured; nothing seeded")


async def _seed_admins() -> int:
    from cronwatch.config import get_config
    from cronwatch.core.database import AsyncSessionLocal
    from cronwatch.services.admins import seed_admins

    async with AsyncSessionLocal() as db:
        count = await seed_admins(db, get_config().admins)
        await db.commit()
    return count


if __name__ == "__main__":
    app()
