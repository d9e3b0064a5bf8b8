"""
APScheduler integration for FastAPI.

Runs the health tick and the daily digest in-process. Schedules live in
memory: they are rebuilt from config.yml on every start.

Jobs:
- Health tick: evaluates all active jobs and pages on new anomalies (every minute by default)
- Daily digest: posts per-job run counts to the digest channel (09:00 by default)
"""

from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from cronwatch.config import AppConfig
from cronwatch.core.logging import get_logger
from cronwatch.services.digest import post_daily_digest
from cronwatch.services.monitor import HealthMonitor

logger = get_logger(__name__)

HEALTH_TICK_ID = "health_tick"
DAILY_DIGEST_ID = "daily_digest"


async def health_tick_job(monitor: HealthMonitor) -> None:
    """Health tick - one serialized evaluation pass."""
    result = await monitor.run_tick()
    if result.error:
        # Re-raise so APScheduler records the failure
        raise RuntimeError(result.error)


async def daily_digest_job(monitor: HealthMonitor) -> None:
    """Daily digest - run counts since local midnight, posted to the digest channel."""
    logger.info("scheduled_digest_started")
    async with monitor.session_factory() as db:
        try:
            posted = await post_daily_digest(db, monitor.dispatcher.notifier, monitor.config.digest)
            logger.bind(posted=posted).info("scheduled_digest_completed")
        except Exception as e:
            logger.bind(error=str(e)).error("scheduled_digest_failed")
            raise


async def _on_job_released(event: Any) -> None:
    """Log failed scheduled jobs; successes are logged by the jobs themselves."""
    if isinstance(event, JobReleased) and event.outcome == JobOutcome.error:
        exception = getattr(event, "exception", None)
        logger.bind(
            schedule_id=event.schedule_id or "unknown",
            error=str(exception) if exception else None,
        ).error("scheduled_job_errored")


async def start_scheduler(monitor: HealthMonitor, config: AppConfig) -> AsyncScheduler | None:
    """Create and start the scheduler. Returns None when disabled by settings."""
    if not config.settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()
    scheduler.subscribe(_on_job_released)

    await scheduler.add_schedule(
        health_tick_job,
        CronTrigger.from_crontab(config.health.check_cron),
        id=HEALTH_TICK_ID,
        kwargs={"monitor": monitor},
        conflict_policy=ConflictPolicy.replace,
    )
    schedule_ids = [HEALTH_TICK_ID]

    if config.digest.enabled:
        await scheduler.add_schedule(
            daily_digest_job,
            CronTrigger.from_crontab(config.digest.cron, timezone=config.digest.timezone),
            id=DAILY_DIGEST_ID,
            kwargs={"monitor": monitor},
            conflict_policy=ConflictPolicy.replace,
        )
        schedule_ids.append(DAILY_DIGEST_ID)

    # Start the background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(jobs=schedule_ids, check_cron=config.health.check_cron).info("scheduler_started")
    return scheduler


async def stop_scheduler(scheduler: AsyncScheduler | None) -> None:
    """Gracefully stop the scheduler."""
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
