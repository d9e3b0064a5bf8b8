"""Job maintainers: who gets paged for a job."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.core.errors import NotFound, UnknownJob
from cronwatch.core.logging import get_logger
from cronwatch.models.job import Job
from cronwatch.models.maintainer import Maintainer
from cronwatch.services.activity import log_activity

logger = get_logger(__name__)


async def _ensure_job(db: AsyncSession, job_name: str) -> None:
    result = await db.execute(select(Job.name).where(Job.name == job_name))
    if result.scalar_one_or_none() is None:
        raise UnknownJob(job_name)


async def list_maintainers(db: AsyncSession, job_name: str) -> list[Maintainer]:
    """List maintainers of a job in the order they were added."""
    result = await db.execute(
        select(Maintainer)
        .where(Maintainer.job_name == job_name)
        .order_by(Maintainer.created_at, Maintainer.id)
    )
    return list(result.scalars().all())


async def maintainer_ids(db: AsyncSession, job_name: str) -> list[str]:
    """Slack user ids of a job's maintainers, for alert routing."""
    return [m.user_id for m in await list_maintainers(db, job_name)]


async def is_maintainer(db: AsyncSession, job_name: str, user_id: str) -> bool:
    result = await db.execute(
        select(Maintainer.id).where(
            Maintainer.job_name == job_name,
            Maintainer.user_id == user_id,
        )
    )
    return result.first() is not None


async def add_maintainer(
    db: AsyncSession,
    job_name: str,
    user_id: str,
    added_by: str | None = None,
) -> Maintainer:
    """
    Add a maintainer to a job. Adding an existing maintainer is a no-op.

    Raises:
        UnknownJob: if the job is not registered
    """
    await _ensure_job(db, job_name)

    result = await db.execute(
        select(Maintainer).where(
            Maintainer.job_name == job_name,
            Maintainer.user_id == user_id,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing

    maintainer = Maintainer(job_name=job_name, user_id=user_id, added_by=added_by)
    db.add(maintainer)
    await db.flush()

    await log_activity(
        db, "maintainer_added", job_name=job_name, actor=added_by, detail=f"user={user_id}"
    )
    return maintainer


async def remove_maintainer(
    db: AsyncSession,
    job_name: str,
    user_id: str,
    actor: str | None = None,
) -> None:
    """
    Remove a maintainer from a job.

    Raises:
        NotFound: if the user is not a maintainer of the job
    """
    result = await db.execute(
        delete(Maintainer).where(
            Maintainer.job_name == job_name,
            Maintainer.user_id == user_id,
        )
    )
    if result.rowcount == 0:
        raise NotFound(f"Maintainer '{user_id}' not found for job '{job_name}'")

    await log_activity(
        db, "maintainer_removed", job_name=job_name, actor=actor, detail=f"user={user_id}"
    )


async def set_maintainers(
    db: AsyncSession,
    job_name: str,
    user_ids: list[str],
    added_by: str | None = None,
) -> list[Maintainer]:
    """Replace the full maintainer list of a job."""
    await _ensure_job(db, job_name)

    await db.execute(delete(Maintainer).where(Maintainer.job_name == job_name))

    maintainers = []
    for user_id in dict.fromkeys(user_ids):
        maintainer = Maintainer(job_name=job_name, user_id=user_id, added_by=added_by)
        db.add(maintainer)
        maintainers.append(maintainer)
    await db.flush()

    await log_activity(
        db,
        "maintainers_set",
        job_name=job_name,
        actor=added_by,
        detail="users=" + ",".join(m.user_id for m in maintainers),
    )
    logger.bind(job_name=job_name, count=len(maintainers)).info("maintainers_set")
    return maintainers
