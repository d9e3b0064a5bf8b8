"""Health, digest and activity read endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query

from cronwatch.core.datetime_utils import to_naive_utc
from cronwatch.dependencies import Config, DBSession
from cronwatch.schemas.health import (
    ActivityResponse,
    AnomalyResponse,
    DigestResponse,
    DigestRowResponse,
)
from cronwatch.services import activity
from cronwatch.services.digest import build_digest
from cronwatch.services.health import evaluate_health

router = APIRouter()


@router.get("/health/anomalies", response_model=list[AnomalyResponse])
async def list_anomalies(db: DBSession) -> list[AnomalyResponse]:
    """
    Evaluate health now.

    Read-only: nothing is alerted and the alert state is not touched.
    """
    anomalies = await evaluate_health(db)
    return [
        AnomalyResponse(
            job_name=a.job_name,
            kind=a.kind.value,
            detail=a.detail,
            severity=a.severity.value,
            run_id=a.run_id,
            since=a.since,
        )
        for a in anomalies
    ]


@router.get("/digest", response_model=DigestResponse)
async def get_digest(
    db: DBSession,
    config: Config,
    since: datetime | None = Query(default=None, description="Window start; defaults to local midnight"),
) -> DigestResponse:
    """Run counts per job and status since `since`."""
    window_start, rows = await build_digest(
        db,
        since=to_naive_utc(since) if since else None,
        timezone=config.digest.timezone,
    )
    return DigestResponse(
        since=window_start,
        rows=[
            DigestRowResponse(job_name=r.job_name, status=r.status.value, count=r.count)
            for r in rows
        ],
    )


@router.get("/activity", response_model=list[ActivityResponse])
async def list_activity(
    db: DBSession,
    job_name: str | None = Query(default=None),
    actor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[ActivityResponse]:
    """Registry audit trail, newest first."""
    if job_name:
        entries = await activity.activity_for_job(db, job_name, limit=limit)
    elif actor:
        entries = await activity.activity_by_actor(db, actor, limit=limit)
    else:
        entries = await activity.recent_activity(db, limit=limit)
    return [ActivityResponse.model_validate(entry) for entry in entries]
