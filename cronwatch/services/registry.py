"""
Job registry: register, update, retire and delete monitored jobs.

Every state-changing operation appends exactly one activity entry in the
same transaction. Callers own the session and its commit.
"""

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import DuplicateJob, NotFound
from cronwatch.core.logging import get_logger
from cronwatch.models.activity import ActivityEntry
from cronwatch.models.job import Job
from cronwatch.models.maintainer import Maintainer
from cronwatch.models.run import Run
from cronwatch.schemas.job import JobCreate, JobUpdate
from cronwatch.services.activity import log_activity

logger = get_logger(__name__)


async def get_job(db: AsyncSession, name: str) -> Job | None:
    """Get a job by name, or None."""
    result = await db.execute(select(Job).where(Job.name == name))
    return result.scalar_one_or_none()


async def require_job(db: AsyncSession, name: str) -> Job:
    """Get a job by name or raise NotFound."""
    job = await get_job(db, name)
    if job is None:
        raise NotFound(f"Job '{name}' not found")
    return job


async def list_jobs(db: AsyncSession, active_only: bool = True) -> list[Job]:
    """List jobs ordered by name. Always reads the store; never cached."""
    query = select(Job).order_by(Job.name)
    if active_only:
        query = query.where(Job.active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def register_job(db: AsyncSession, body: JobCreate, actor: str | None = None) -> Job:
    """
    Register a new job.

    Raises:
        DuplicateJob: if a job with the same name exists (existing row untouched)
    """
    if await get_job(db, body.name) is not None:
        raise DuplicateJob(body.name)

    job = Job(**body.model_dump())
    try:
        # Savepoint: a lost race undoes only this insert, not the caller's transaction
        async with db.begin_nested():
            db.add(job)
    except IntegrityError as e:
        raise DuplicateJob(body.name) from e

    await log_activity(
        db,
        "job_registered",
        job_name=job.name,
        actor=actor,
        detail=f"every={job.expected_every_s}s severity={job.severity.value}",
    )
    logger.bind(job_name=job.name, actor=actor).info("job_registered")
    return job


def _describe_changes(changes: dict[str, Any]) -> str:
    parts = []
    for field, value in sorted(changes.items()):
        rendered = value.value if hasattr(value, "value") else value
        parts.append(f"{field}={rendered}")
    return " ".join(parts)


async def update_job(
    db: AsyncSession,
    name: str,
    body: JobUpdate,
    actor: str | None = None,
) -> Job:
    """
    Apply a partial update. Fields not present in `body` keep their value.

    Raises:
        NotFound: if the job does not exist
    """
    job = await require_job(db, name)

    requested = body.model_dump(exclude_unset=True)
    changes = {field: value for field, value in requested.items() if getattr(job, field) != value}

    if not changes:
        return job

    for field, value in changes.items():
        setattr(job, field, value)
    job.updated_at = utc_now()
    await db.flush()

    if changes == {"active": False}:
        event_type = "job_deactivated"
    elif changes == {"active": True}:
        event_type = "job_activated"
    else:
        event_type = "job_updated"

    await log_activity(
        db,
        event_type,
        job_name=name,
        actor=actor,
        detail=_describe_changes(changes),
    )
    logger.bind(job_name=name, actor=actor, fields=sorted(changes)).info(event_type)
    return job


async def deactivate_job(db: AsyncSession, name: str, actor: str | None = None) -> Job:
    """Soft-retire a job. History is kept; health evaluation skips it."""
    return await update_job(db, name, JobUpdate(active=False), actor=actor)


async def activate_job(db: AsyncSession, name: str, actor: str | None = None) -> Job:
    """Re-enable monitoring of a retired job."""
    return await update_job(db, name, JobUpdate(active=True), actor=actor)


async def delete_job(db: AsyncSession, name: str, actor: str | None = None) -> None:
    """
    Hard-delete a job with its maintainers and run history.

    Activity entries survive with their job reference nulled.

    Raises:
        NotFound: if the job does not exist
    """
    job = await require_job(db, name)
    db.expunge(job)

    await db.execute(
        update(ActivityEntry).where(ActivityEntry.job_name == name).values(job_name=None)
    )
    await db.execute(delete(Maintainer).where(Maintainer.job_name == name))
    runs = await db.execute(delete(Run).where(Run.job_name == name))
    await db.execute(delete(Job).where(Job.name == name))

    await log_activity(
        db,
        "job_deleted",
        actor=actor,
        detail=f"job={name} runs_deleted={runs.rowcount}",
    )
    logger.bind(job_name=name, actor=actor, runs_deleted=runs.rowcount).info("job_deleted")
