"""
Health evaluator: classify registry + ledger state into anomalies.

A tick reads the store twice (last activity per job, open 'started' runs)
and hands the snapshot to `classify_anomalies`, a pure function. Nothing is
cached between calls and nothing is written; deduplication of repeat alerts
belongs to the alert dispatcher.

Rules:
- missed: an active job has no 'started' or 'success' run with
  created_at >= now - expected_every_s. Failed runs do not count as activity,
  and a job that never reported is missed.
- stuck: a 'started' run of an active job with max_runtime_s set, older than
  now - max_runtime_s, with no later 'success'/'failed' run of that job.
  Each open start is reported on its own.
"""

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from cronwatch.core.datetime_utils import format_duration, seconds_ago, utc_now
from cronwatch.models.job import Job, Severity
from cronwatch.models.run import ACTIVE_STATUSES, TERMINAL_STATUSES, Run, RunStatus
from cronwatch.services.ledger import latest_per_job
from cronwatch.services.registry import list_jobs


class AnomalyKind(str, enum.Enum):
    """Kind of health problem. The evaluator emits MISSED and STUCK;
    FAILED is raised directly from a failed run report."""

    MISSED = "missed"
    STUCK = "stuck"
    FAILED = "failed"


_KIND_ORDER = {AnomalyKind.MISSED: 0, AnomalyKind.STUCK: 1, AnomalyKind.FAILED: 2}

AnomalyKey = tuple[str, AnomalyKind, int | None]


@dataclass(frozen=True)
class Anomaly:
    """One detected problem with a job."""

    job_name: str
    kind: AnomalyKind
    severity: Severity
    detail: str
    run_id: int | None = None
    since: datetime | None = None

    @property
    def key(self) -> AnomalyKey:
        """Identity across ticks: a stuck anomaly is per run, a missed one per job."""
        return (self.job_name, self.kind, self.run_id)

    @property
    def sort_key(self) -> tuple[str, int, int]:
        return (self.job_name, _KIND_ORDER[self.kind], self.run_id or 0)


@dataclass
class JobHealth:
    """Dashboard row: a job, its last run, and its current anomalies."""

    job: Job
    latest_run: Run | None
    anomalies: list[Anomaly] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return not self.anomalies


def _missed_detail(job: Job, last_active: datetime | None, now: datetime) -> str:
    window = format_duration(job.expected_every_s)
    if last_active is None:
        return f"No started/success run ever reported (expected every {window})"
    ago = format_duration((now - last_active).total_seconds())
    return f"No started/success run in the last {window} (last seen {ago} ago)"


def _stuck_detail(job: Job, run: Run, now: datetime) -> str:
    running = format_duration((now - run.created_at).total_seconds())
    limit = format_duration(job.max_runtime_s or 0)
    return f"Run #{run.id} started {running} ago without finishing (max runtime {limit})"


def classify_anomalies(
    jobs: Iterable[Job],
    last_active: Mapping[str, datetime],
    open_starts: Iterable[Run],
    now: datetime,
) -> list[Anomaly]:
    """
    Classify a registry/ledger snapshot.

    Args:
        jobs: Registered jobs (inactive ones are ignored)
        last_active: Newest started/success created_at per job name
        open_starts: 'started' runs with no later terminal run
        now: Evaluation instant (naive UTC)

    Returns:
        Anomalies sorted by job name, then kind, then run id
    """
    active_jobs = {job.name: job for job in jobs if job.active}
    anomalies: list[Anomaly] = []

    for job in active_jobs.values():
        seen = last_active.get(job.name)
        if seen is None or seen < seconds_ago(job.expected_every_s, now):
            anomalies.append(
                Anomaly(
                    job_name=job.name,
                    kind=AnomalyKind.MISSED,
                    severity=job.severity,
                    detail=_missed_detail(job, seen, now),
                    since=seen,
                )
            )

    for run in open_starts:
        job = active_jobs.get(run.job_name)
        if job is None or job.max_runtime_s is None:
            continue
        if run.status != RunStatus.STARTED:
            continue
        if run.created_at < seconds_ago(job.max_runtime_s, now):
            anomalies.append(
                Anomaly(
                    job_name=job.name,
                    kind=AnomalyKind.STUCK,
                    severity=job.severity,
                    detail=_stuck_detail(job, run, now),
                    run_id=run.id,
                    since=run.created_at,
                )
            )

    return sorted(anomalies, key=lambda a: a.sort_key)


async def last_activity_by_job(db: AsyncSession) -> dict[str, datetime]:
    """Newest started/success created_at for every job that has one."""
    result = await db.execute(
        select(Run.job_name, func.max(Run.created_at))
        .where(Run.status.in_(ACTIVE_STATUSES))
        .group_by(Run.job_name)
    )
    return {job_name: created_at for job_name, created_at in result.all()}


async def open_started_runs(db: AsyncSession) -> list[Run]:
    """
    'started' runs of active jobs with max_runtime_s set and no later
    success/failed run. Later means a greater created_at, or the same
    created_at with a greater id.
    """
    later = aliased(Run)
    closed = exists().where(
        later.job_name == Run.job_name,
        later.status.in_(TERMINAL_STATUSES),
        or_(
            later.created_at > Run.created_at,
            and_(later.created_at == Run.created_at, later.id > Run.id),
        ),
    )

    result = await db.execute(
        select(Run)
        .join(Job, Job.name == Run.job_name)
        .where(
            Run.status == RunStatus.STARTED,
            Job.active.is_(True),
            Job.max_runtime_s.is_not(None),
            ~closed,
        )
        .order_by(Run.job_name, Run.created_at, Run.id)
    )
    return list(result.scalars().all())


async def evaluate_health(db: AsyncSession, now: datetime | None = None) -> list[Anomaly]:
    """
    Compute the current anomaly list from the store. Read-only and
    idempotent: two calls with the same `now` and no writes in between
    return equal lists.
    """
    now = now or utc_now()
    jobs = await list_jobs(db, active_only=True)
    last_active = await last_activity_by_job(db)
    open_starts = await open_started_runs(db)
    return classify_anomalies(jobs, last_active, open_starts, now)


async def job_health(
    db: AsyncSession,
    now: datetime | None = None,
    active_only: bool = True,
) -> list[JobHealth]:
    """Per-job status rows for the dashboard and `/cron status`."""
    now = now or utc_now()
    jobs = await list_jobs(db, active_only=active_only)
    latest = {run.job_name: run for run in await latest_per_job(db)}
    anomalies = await evaluate_health(db, now)

    by_job: dict[str, list[Anomaly]] = {}
    for anomaly in anomalies:
        by_job.setdefault(anomaly.job_name, []).append(anomaly)

    return [
        JobHealth(job=job, latest_run=latest.get(job.name), anomalies=by_job.get(job.name, []))
        for job in jobs
    ]
