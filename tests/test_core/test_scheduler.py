"""Tests for the scheduled job wrappers."""

from unittest.mock import AsyncMock

import pytest

from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.scheduler import daily_digest_job, health_tick_job, start_scheduler
from cronwatch.models.run import RunStatus
from cronwatch.services.monitor import HealthMonitor, TickResult

pytestmark = pytest.mark.asyncio


class TestHealthTickJob:
    async def test_runs_tick(self, monitor, job_factory, db_session, notifier):
        """Health tick job pages new anomalies."""
        await job_factory(name="nightly-etl", alert_target="#ops")
        await db_session.commit()

        await health_tick_job(monitor)

        assert [alert.job_name for _, alert in notifier.alerts] == ["nightly-etl"]

    async def test_tick_error_is_raised(self, monitor):
        """Should raise so the scheduler records a failed tick."""
        monitor.run_tick = AsyncMock(return_value=TickResult(started_at=utc_now(), error="db down"))

        with pytest.raises(RuntimeError, match="db down"):
            await health_tick_job(monitor)

    async def test_skipped_tick_is_not_an_error(self, monitor):
        """An overlapping tick is not a failure."""
        monitor.run_tick = AsyncMock(return_value=TickResult(started_at=utc_now(), skipped=True))

        await health_tick_job(monitor)


class TestDailyDigestJob:
    async def test_posts_to_digest_channel(
        self, session_maker, notifier, config_factory, run_factory, job_factory, db_session
    ):
        """Digest job posts to the digest channel."""
        await job_factory(name="backup")
        await run_factory("backup", RunStatus.SUCCESS, utc_now())
        await db_session.commit()
        config = config_factory(digest={"enabled": True, "channel": "C-DIGEST"})

        await daily_digest_job(HealthMonitor(session_maker, notifier, config))

        assert [channel for channel, _, _ in notifier.posts] == ["C-DIGEST"]


class TestStartScheduler:
    async def test_disabled_returns_none(self, monitor, test_config):
        """Should not start when the scheduler is disabled."""
        # TestSettings turns the scheduler off
        assert await start_scheduler(monitor, test_config) is None
