"""Run reporting and ledger queries."""

from fastapi import APIRouter, Query, status

from cronwatch.core.logging import get_logger
from cronwatch.dependencies import ApiKey, DBSession, Dispatcher
from cronwatch.models.run import RunStatus
from cronwatch.schemas.run import RunReport, RunReportResponse, RunResponse
from cronwatch.services import ledger, registry

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/runs",
    response_model=RunReportResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[ApiKey],
)
async def report_run(body: RunReport, db: DBSession, dispatcher: Dispatcher) -> RunReportResponse:
    """
    Record a start/finish signal from a job wrapper.

    - 404 if the job is not registered
    - A failed report pages the job's recipients right away
    """
    run = await ledger.append_run(
        db,
        body.job_name,
        RunStatus(body.status),
        message=body.message,
        duration_s=body.duration_s,
        triggered_by=body.triggered_by,
    )

    if run.status == RunStatus.FAILED:
        job = await registry.require_job(db, run.job_name)
        outcome = await dispatcher.notify_failed_run(db, job, run)
        logger.bind(job_name=job.name, run_id=run.id, recipients=len(outcome)).info(
            "failed_run_alerted"
        )

    return RunReportResponse(run_id=run.id)


@router.get("/runs", response_model=list[RunResponse])
async def list_runs(
    db: DBSession,
    job_name: str | None = Query(default=None, description="Filter by job"),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[RunResponse]:
    """Recent runs, newest first."""
    if job_name:
        await registry.require_job(db, job_name)
        runs = await ledger.recent_for_job(db, job_name, limit=limit)
    else:
        runs = await ledger.recent_global(db, limit=limit)
    return [RunResponse.model_validate(run) for run in runs]


@router.get("/runs/latest", response_model=list[RunResponse])
async def latest_runs(db: DBSession) -> list[RunResponse]:
    """The last run of every job that has reported."""
    runs = await ledger.latest_per_job(db)
    return [RunResponse.model_validate(run) for run in runs]
