"""Tests for the health evaluator."""

from datetime import datetime, timedelta

import pytest

from cronwatch.models import Job, Run, RunStatus, Severity
from cronwatch.services import registry
from cronwatch.services.health import (
    AnomalyKind,
    classify_anomalies,
    evaluate_health,
    job_health,
)
from cronwatch.services.ledger import recent_for_job

pytestmark = pytest.mark.asyncio

T = datetime(2026, 1, 10, 12, 0, 0)


def kinds_by_job(anomalies) -> dict[str, set[AnomalyKind]]:
    result: dict[str, set[AnomalyKind]] = {}
    for anomaly in anomalies:
        result.setdefault(anomaly.job_name, set()).add(anomaly.kind)
    return result


class TestClassifyAnomalies:
    """Pure classification, no database."""

    def _job(self, name="job", every=3600, max_runtime=None, active=True) -> Job:
        return Job(
            name=name,
            expected_every_s=every,
            max_runtime_s=max_runtime,
            severity=Severity.MEDIUM,
            active=active,
        )

    async def test_never_reported_is_missed(self):
        """A job that never reported is missed."""
        anomalies = classify_anomalies([self._job()], {}, [], T)

        assert [(a.job_name, a.kind) for a in anomalies] == [("job", AnomalyKind.MISSED)]
        assert anomalies[0].since is None

    async def test_activity_exactly_at_window_edge_is_not_missed(self):
        """Activity exactly one window ago still counts."""
        last_active = {"job": T - timedelta(seconds=3600)}

        assert classify_anomalies([self._job()], last_active, [], T) == []

    async def test_activity_just_outside_window_is_missed(self):
        """Should flag activity older than the window."""
        last_active = {"job": T - timedelta(seconds=3601)}

        anomalies = classify_anomalies([self._job()], last_active, [], T)

        assert [a.kind for a in anomalies] == [AnomalyKind.MISSED]

    async def test_inactive_job_ignored(self):
        """Inactive jobs are never anomalous."""
        job = self._job(active=False, max_runtime=60)
        run = Run(id=1, job_name="job", status=RunStatus.STARTED, created_at=T - timedelta(hours=5))

        assert classify_anomalies([job], {}, [run], T) == []

    async def test_stuck_requires_max_runtime(self):
        """Stuck detection is opt-in via max_runtime_s."""
        job = self._job(every=86400)
        run = Run(id=1, job_name="job", status=RunStatus.STARTED, created_at=T - timedelta(days=300))

        anomalies = classify_anomalies([job], {"job": T}, [run], T)

        assert anomalies == []

    async def test_sorted_by_job_then_kind_then_run(self):
        """Anomalies sort by job, kind, then run id."""
        jobs = [self._job(name="b", max_runtime=60), self._job(name="a", max_runtime=60)]
        runs = [
            Run(id=7, job_name="b", status=RunStatus.STARTED, created_at=T - timedelta(minutes=5)),
            Run(id=3, job_name="b", status=RunStatus.STARTED, created_at=T - timedelta(minutes=9)),
        ]

        anomalies = classify_anomalies(jobs, {"b": T}, runs, T)

        assert [(a.job_name, a.kind, a.run_id) for a in anomalies] == [
            ("a", AnomalyKind.MISSED, None),
            ("b", AnomalyKind.STUCK, 3),
            ("b", AnomalyKind.STUCK, 7),
        ]


class TestEvaluateHealth:
    """Evaluation against the store."""

    async def test_backup_is_stuck_but_not_missed(self, db_session, job_factory, run_factory):
        """Long-running backup is stuck, not missed."""
        await job_factory(name="backup", expected_every_s=3600, max_runtime_s=1800)
        started = await run_factory("backup", RunStatus.STARTED, T)

        anomalies = await evaluate_health(db_session, T + timedelta(seconds=1900))

        assert [(a.job_name, a.kind, a.run_id) for a in anomalies] == [
            ("backup", AnomalyKind.STUCK, started.id)
        ]

    async def test_backup_within_max_runtime_is_healthy(self, db_session, job_factory, run_factory):
        """Should not flag a run inside max runtime."""
        await job_factory(name="backup", expected_every_s=3600, max_runtime_s=1800)
        await run_factory("backup", RunStatus.STARTED, T)

        assert await evaluate_health(db_session, T + timedelta(seconds=1700)) == []

    async def test_nightly_etl_missed(self, db_session, job_factory, run_factory):
        """Overdue nightly ETL is missed."""
        await job_factory(name="nightly-etl", expected_every_s=86400)
        await run_factory("nightly-etl", RunStatus.SUCCESS, T - timedelta(seconds=90000))

        anomalies = await evaluate_health(db_session, T)

        assert kinds_by_job(anomalies) == {"nightly-etl": {AnomalyKind.MISSED}}
        assert anomalies[0].severity == Severity.MEDIUM

    async def test_failed_runs_do_not_count_as_activity(self, db_session, job_factory, run_factory):
        """Failed runs do not reset the missed window."""
        await job_factory(name="etl", expected_every_s=3600)
        await run_factory("etl", RunStatus.SUCCESS, T - timedelta(hours=2))
        await run_factory("etl", RunStatus.FAILED, T - timedelta(minutes=5))

        anomalies = await evaluate_health(db_session, T)

        assert kinds_by_job(anomalies) == {"etl": {AnomalyKind.MISSED}}

    async def test_missed_runs_do_not_count_as_activity(self, db_session, job_factory, run_factory):
        """Synthetic missed runs do not reset the window."""
        await job_factory(name="etl", expected_every_s=3600)
        await run_factory("etl", RunStatus.MISSED, T - timedelta(minutes=5))

        assert kinds_by_job(await evaluate_health(db_session, T)) == {"etl": {AnomalyKind.MISSED}}

    async def test_terminal_run_closes_start(self, db_session, job_factory, run_factory):
        """A later success closes an open start."""
        await job_factory(name="backup", expected_every_s=86400, max_runtime_s=60)
        await run_factory("backup", RunStatus.STARTED, T - timedelta(hours=1))
        await run_factory("backup", RunStatus.FAILED, T - timedelta(minutes=30))

        assert await evaluate_health(db_session, T) == []

    async def test_terminal_run_at_same_instant_closes_start(
        self, db_session, job_factory, run_factory
    ):
        """Same-instant terminal run closes the start by id."""
        await job_factory(name="backup", expected_every_s=86400, max_runtime_s=60)
        await run_factory("backup", RunStatus.STARTED, T - timedelta(hours=1))
        await run_factory("backup", RunStatus.SUCCESS, T - timedelta(hours=1))

        assert await evaluate_health(db_session, T) == []

    async def test_multiple_open_starts_reported_separately(
        self, db_session, job_factory, run_factory
    ):
        """Should report each stuck start separately."""
        await job_factory(name="backup", expected_every_s=86400, max_runtime_s=60)
        first = await run_factory("backup", RunStatus.STARTED, T - timedelta(hours=2))
        second = await run_factory("backup", RunStatus.STARTED, T - timedelta(hours=1))

        anomalies = await evaluate_health(db_session, T)

        assert [(a.kind, a.run_id) for a in anomalies] == [
            (AnomalyKind.STUCK, first.id),
            (AnomalyKind.STUCK, second.id),
        ]

    async def test_start_after_terminal_run_is_open(self, db_session, job_factory, run_factory):
        """A start after the last terminal run is open."""
        await job_factory(name="backup", expected_every_s=86400, max_runtime_s=60)
        await run_factory("backup", RunStatus.SUCCESS, T - timedelta(hours=2))
        reopened = await run_factory("backup", RunStatus.STARTED, T - timedelta(hours=1))

        anomalies = await evaluate_health(db_session, T)

        assert [a.run_id for a in anomalies] == [reopened.id]

    async def test_no_max_runtime_never_stuck(self, db_session, job_factory, run_factory):
        """Jobs without max runtime are never stuck."""
        await job_factory(name="backup", expected_every_s=86400 * 365)
        await run_factory("backup", RunStatus.STARTED, T - timedelta(days=200))

        assert await evaluate_health(db_session, T) == []

    async def test_deactivated_job_skipped_history_kept(
        self, db_session, job_factory, run_factory
    ):
        """Deactivation silences a job but keeps history."""
        await job_factory(name="backup", expected_every_s=3600, max_runtime_s=60)
        await run_factory("backup", RunStatus.STARTED, T - timedelta(days=3))
        assert kinds_by_job(await evaluate_health(db_session, T)) == {
            "backup": {AnomalyKind.MISSED, AnomalyKind.STUCK}
        }

        await registry.deactivate_job(db_session, "backup")

        assert await evaluate_health(db_session, T) == []
        assert len(await recent_for_job(db_session, "backup")) == 1

    async def test_idempotent(self, db_session, job_factory, run_factory):
        """Repeated evaluation returns the same anomalies."""
        await job_factory(name="a", expected_every_s=60, max_runtime_s=30)
        await job_factory(name="b", expected_every_s=60)
        await run_factory("a", RunStatus.STARTED, T - timedelta(minutes=10))

        first = await evaluate_health(db_session, T)
        second = await evaluate_health(db_session, T)

        assert first == second
        assert len(first) == 3

    async def test_healthy_job_not_reported(self, db_session, job_factory, run_factory):
        """Should not report a healthy job."""
        await job_factory(name="backup", expected_every_s=3600, max_runtime_s=1800)
        await run_factory("backup", RunStatus.STARTED, T - timedelta(minutes=20))
        await run_factory("backup", RunStatus.SUCCESS, T - timedelta(minutes=10))

        assert await evaluate_health(db_session, T) == []


class TestJobHealth:
    async def test_rows_carry_latest_run_and_anomalies(
        self, db_session, job_factory, run_factory
    ):
        """Rows include latest run and anomalies."""
        await job_factory(name="healthy", expected_every_s=3600)
        await job_factory(name="late", expected_every_s=60)
        latest = await run_factory("healthy", RunStatus.SUCCESS, T - timedelta(minutes=1))

        rows = await job_health(db_session, T)

        by_name = {row.job.name: row for row in rows}
        assert by_name["healthy"].is_healthy
        assert by_name["healthy"].latest_run.id == latest.id
        assert not by_name["late"].is_healthy
        assert by_name["late"].latest_run is None
