"""
Run ledger: append-only execution history.

Rows are ordered by created_at then id everywhere; nothing here updates
or deletes a run (deletion only happens through registry.delete_job).
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import UnknownJob
from cronwatch.core.logging import get_logger
from cronwatch.models.job import Job
from cronwatch.models.run import Run, RunStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusCount:
    """Number of runs of one job with one status."""

    job_name: str
    status: RunStatus
    count: int


async def append_run(
    db: AsyncSession,
    job_name: str,
    status: RunStatus,
    message: str | None = None,
    duration_s: float | None = None,
    triggered_by: str | None = None,
    created_at: datetime | None = None,
) -> Run:
    """
    Append a run to the ledger.

    Raises:
        UnknownJob: if the job is not registered (jobs are never auto-created)
    """
    exists = await db.execute(select(Job.name).where(Job.name == job_name))
    if exists.scalar_one_or_none() is None:
        raise UnknownJob(job_name)

    run = Run(
        job_name=job_name,
        status=status,
        message=message,
        duration_s=duration_s,
        triggered_by=triggered_by or "schedule",
        created_at=created_at or utc_now(),
    )
    db.add(run)
    await db.flush()

    logger.bind(
        job_name=job_name,
        status=status.value,
        run_id=run.id,
        triggered_by=run.triggered_by,
    ).info("run_recorded")
    return run


async def get_run(db: AsyncSession, run_id: int) -> Run | None:
    """Get a single run by id."""
    result = await db.execute(select(Run).where(Run.id == run_id))
    return result.scalar_one_or_none()


async def recent_for_job(db: AsyncSession, job_name: str, limit: int = 20) -> list[Run]:
    """Get recent runs for one job, newest first."""
    result = await db.execute(
        select(Run)
        .where(Run.job_name == job_name)
        .order_by(Run.created_at.desc(), Run.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def recent_global(db: AsyncSession, limit: int = 50) -> list[Run]:
    """Get recent runs across all jobs, newest first."""
    result = await db.execute(
        select(Run).order_by(Run.created_at.desc(), Run.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def latest_per_job(db: AsyncSession) -> list[Run]:
    """Get the chronologically last run of every job that has runs, newest first."""
    ranked = select(
        Run.id,
        func.row_number()
        .over(partition_by=Run.job_name, order_by=(Run.created_at.desc(), Run.id.desc()))
        .label("rn"),
    ).subquery()

    result = await db.execute(
        select(Run)
        .join(ranked, ranked.c.id == Run.id)
        .where(ranked.c.rn == 1)
        .order_by(Run.created_at.desc(), Run.id.desc())
    )
    return list(result.scalars().all())


async def counts_by_status_since(db: AsyncSession, since: datetime) -> list[StatusCount]:
    """Count runs per (job, status) created at or after `since`."""
    result = await db.execute(
        select(Run.job_name, Run.status, func.count(Run.id))
        .where(Run.created_at >= since)
        .group_by(Run.job_name, Run.status)
    )
    counts = [
        StatusCount(job_name=job_name, status=RunStatus(status), count=count)
        for job_name, status, count in result.all()
    ]
    # Native PG enums sort by declaration order; keep output alphabetical on every backend
    return sorted(counts, key=lambda c: (c.job_name, c.status.value))
