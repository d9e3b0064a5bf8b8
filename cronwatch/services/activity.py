"""Audit log of state-changing operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.core.logging import get_logger
from cronwatch.models.activity import ActivityEntry

logger = get_logger(__name__)


async def log_activity(
    db: AsyncSession,
    event_type: str,
    job_name: str | None = None,
    actor: str | None = None,
    detail: str | None = None,
) -> ActivityEntry:
    """Append an activity entry in the caller's transaction."""
    entry = ActivityEntry(
        event_type=event_type,
        job_name=job_name,
        actor=actor,
        detail=detail,
    )
    db.add(entry)
    await db.flush()
    logger.bind(event_type=event_type, job_name=job_name, actor=actor).info("activity_logged")
    return entry


async def recent_activity(db: AsyncSession, limit: int = 50) -> list[ActivityEntry]:
    """Get recent activity across all jobs, newest first."""
    result = await db.execute(
        select(ActivityEntry)
        .order_by(ActivityEntry.created_at.desc(), ActivityEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def activity_for_job(db: AsyncSession, job_name: str, limit: int = 20) -> list[ActivityEntry]:
    """Get activity for a specific job, newest first."""
    result = await db.execute(
        select(ActivityEntry)
        .where(ActivityEntry.job_name == job_name)
        .order_by(ActivityEntry.created_at.desc(), ActivityEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def activity_by_actor(db: AsyncSession, actor: str, limit: int = 20) -> list[ActivityEntry]:
    """Get activity performed by one actor, newest first."""
    result = await db.execute(
        select(ActivityEntry)
        .where(ActivityEntry.actor == actor)
        .order_by(ActivityEntry.created_at.desc(), ActivityEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
