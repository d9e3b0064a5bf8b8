"""
Health monitor: one serialized evaluation tick at a time.

A tick opens its own session, evaluates health, dispatches alerts and
commits. Ticks never overlap: a tick that fires while another is running
is skipped. A store failure abandons the tick; anomalies already paged stay
in the alert state and the next tick simply recomputes.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cronwatch.config import AppConfig
from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import StoreUnavailable
from cronwatch.core.logging import get_logger
from cronwatch.models.run import RunStatus
from cronwatch.services.alerts import AlertDispatcher, AlertState, DispatchResult
from cronwatch.services.health import Anomaly, AnomalyKind, evaluate_health
from cronwatch.services.ledger import append_run
from cronwatch.services.notifications import Notifier

logger = get_logger(__name__)

STORE_ERRORS = (OperationalError, InterfaceError, DBAPIError, OSError)


@dataclass
class TickResult:
    """Outcome of one evaluation tick."""

    started_at: datetime
    skipped: bool = False
    error: str | None = None
    anomalies: list[Anomaly] = field(default_factory=list)
    dispatch: DispatchResult | None = None

    @property
    def ok(self) -> bool:
        return not self.skipped and self.error is None


class HealthMonitor:
    """Owns the alert state for the process lifetime and runs ticks against it."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        config: AppConfig,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.dispatcher = AlertDispatcher(notifier, config.alerts)
        self.state = AlertState()
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_tick(self, now: datetime | None = None) -> TickResult:
        """
        Evaluate and dispatch once. Never raises.

        Args:
            now: Evaluation instant (naive UTC); defaults to current time
        """
        now = now or utc_now()

        if self._lock.locked():
            logger.bind(at=now.isoformat()).warning("health_tick_skipped_overlap")
            return TickResult(started_at=now, skipped=True)

        async with self._lock:
            try:
                return await self._tick(now)
            except StoreUnavailable as e:
                logger.bind(error=str(e)).error("health_tick_store_unavailable")
                return TickResult(started_at=now, error=str(e))
            except Exception as e:
                logger.bind(error=str(e)).exception("health_tick_failed")
                return TickResult(started_at=now, error=str(e))

    async def _tick(self, now: datetime) -> TickResult:
        try:
            async with self.session_factory() as db:
                anomalies = await evaluate_health(db, now)
                dispatch = await self.dispatcher.dispatch(db, anomalies, self.state)

                if self.config.health.record_missed_runs:
                    await self._record_missed(db, dispatch, now)

                await db.commit()
        except STORE_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

        logger.bind(
            anomalies=len(anomalies),
            alerted=len(dispatch.alerted),
            suppressed=len(dispatch.suppressed),
            resolved=len(dispatch.resolved),
            failed_deliveries=dispatch.failed_deliveries,
        ).info("health_tick_completed")

        return TickResult(started_at=now, anomalies=anomalies, dispatch=dispatch)

    async def _record_missed(self, db: AsyncSession, dispatch: DispatchResult, now: datetime) -> None:
        """Materialize newly alerted missed anomalies as 'missed' runs for the audit trail."""
        for anomaly in dispatch.alerted:
            if anomaly.kind != AnomalyKind.MISSED:
                continue
            await append_run(
                db,
                anomaly.job_name,
                RunStatus.MISSED,
                message=anomaly.detail,
                triggered_by="cronwatch",
                created_at=now,
            )
