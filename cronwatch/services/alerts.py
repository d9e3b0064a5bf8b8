"""
Alert dispatcher: turn anomalies into deduplicated notifications.

Dedup state lives in an AlertState owned by the caller (the health
monitor), never in this module. An anomaly is paged once when it first
appears, suppressed while it persists, and forgotten when it clears so a
later recurrence pages again.

Routing for a job:
    maintainers
    + alert_target, unless severity is low
    + alerts.high_severity_channel, when severity is high

Each recipient is delivered as its own task; one failing or slow recipient
never blocks the others or the tick.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.config import AlertsConfig
from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import DeliveryFailure
from cronwatch.core.logging import get_logger
from cronwatch.models.job import Job, Severity
from cronwatch.models.run import Run
from cronwatch.services.health import Anomaly, AnomalyKey, AnomalyKind
from cronwatch.services.maintainers import maintainer_ids
from cronwatch.services.notifications import Alert, Notifier
from cronwatch.services.registry import get_job

logger = get_logger(__name__)


class AlertState:
    """Anomalies already alerted and not yet resolved, with first-alert time."""

    def __init__(self) -> None:
        self._alerted: dict[AnomalyKey, datetime] = {}

    def __contains__(self, key: AnomalyKey) -> bool:
        return key in self._alerted

    def __len__(self) -> int:
        return len(self._alerted)

    def keys(self) -> set[AnomalyKey]:
        return set(self._alerted)

    def mark(self, key: AnomalyKey, at: datetime | None = None) -> None:
        self._alerted.setdefault(key, at or utc_now())

    def resolve(self, key: AnomalyKey) -> None:
        self._alerted.pop(key, None)

    def clear(self) -> None:
        self._alerted.clear()


@dataclass
class DispatchResult:
    """What happened to the anomalies of one tick."""

    alerted: list[Anomaly] = field(default_factory=list)
    suppressed: list[Anomaly] = field(default_factory=list)
    resolved: list[AnomalyKey] = field(default_factory=list)
    deliveries: dict[AnomalyKey, dict[str, bool]] = field(default_factory=dict)

    @property
    def failed_deliveries(self) -> int:
        return sum(1 for per_job in self.deliveries.values() for ok in per_job.values() if not ok)


class AlertDispatcher:
    """Decides whether an alert fires and who gets it, then delivers it."""

    def __init__(self, notifier: Notifier, config: AlertsConfig) -> None:
        self.notifier = notifier
        self.config = config

    async def recipients_for(self, db: AsyncSession, job: Job) -> set[str]:
        """Maintainers, plus alert target unless low severity, plus broadcast channel if high."""
        recipients = set(await maintainer_ids(db, job.name))

        if job.alert_target and job.severity != Severity.LOW:
            recipients.add(job.alert_target)

        if job.severity == Severity.HIGH and self.config.high_severity_channel:
            recipients.add(self.config.high_severity_channel)

        return recipients

    async def _deliver_one(self, recipient: str, alert: Alert) -> None:
        try:
            await asyncio.wait_for(
                self.notifier.send_alert(recipient, alert),
                timeout=self.config.delivery_timeout_seconds,
            )
        except TimeoutError as e:
            raise DeliveryFailure(recipient, "timed out") from e

    async def notify(self, recipients: set[str], alert: Alert) -> dict[str, bool]:
        """
        Deliver an alert to every recipient concurrently.

        Returns:
            Per-recipient success flag; failures are logged, never raised
        """
        if not recipients:
            logger.bind(job_name=alert.job_name, kind=alert.kind.value).warning(
                "alert_has_no_recipients"
            )
            return {}

        ordered = sorted(recipients)
        results = await asyncio.gather(
            *(self._deliver_one(recipient, alert) for recipient in ordered),
            return_exceptions=True,
        )

        outcome: dict[str, bool] = {}
        for recipient, result in zip(ordered, results, strict=True):
            if isinstance(result, BaseException):
                logger.bind(
                    job_name=alert.job_name,
                    kind=alert.kind.value,
                    recipient=recipient,
                    error=str(result),
                ).warning("alert_delivery_failed")
                outcome[recipient] = False
            else:
                outcome[recipient] = True

        logger.bind(
            job_name=alert.job_name,
            kind=alert.kind.value,
            severity=alert.severity.value,
            sent=sum(outcome.values()),
            failed=len(outcome) - sum(outcome.values()),
        ).info("alert_sent")
        return outcome

    async def dispatch(
        self,
        db: AsyncSession,
        anomalies: list[Anomaly],
        state: AlertState,
    ) -> DispatchResult:
        """
        Alert new anomalies, suppress repeats, clear resolved ones.

        An anomaly is marked alerted once its delivery was attempted, even
        if every recipient failed; it is only retried on recurrence.
        """
        result = DispatchResult()
        current = {anomaly.key: anomaly for anomaly in anomalies}

        for key in sorted(state.keys() - current.keys(), key=lambda k: (k[0], k[1].value, k[2] or 0)):
            state.resolve(key)
            result.resolved.append(key)
            logger.bind(job_name=key[0], kind=key[1].value, run_id=key[2]).info("anomaly_resolved")

        pending: list[tuple[Anomaly, set[str], Alert]] = []
        for anomaly in anomalies:
            if anomaly.key in state:
                result.suppressed.append(anomaly)
                continue

            # Re-read the job: it may have been deleted or retired since evaluation
            job = await get_job(db, anomaly.job_name)
            if job is None or not job.active:
                continue

            alert = Alert(
                job_name=anomaly.job_name,
                kind=anomaly.kind,
                severity=anomaly.severity,
                detail=anomaly.detail,
                run_id=anomaly.run_id,
                manual_trigger_url=job.manual_trigger_url,
            )
            pending.append((anomaly, await self.recipients_for(db, job), alert))

        if not self.config.enabled:
            for anomaly, _, _ in pending:
                state.mark(anomaly.key)
                result.alerted.append(anomaly)
            if pending:
                logger.bind(count=len(pending)).info("alerts_disabled_skipping_delivery")
            return result

        outcomes = await asyncio.gather(
            *(self.notify(recipients, alert) for _, recipients, alert in pending)
        )
        for (anomaly, _, _), outcome in zip(pending, outcomes, strict=True):
            state.mark(anomaly.key)
            result.alerted.append(anomaly)
            result.deliveries[anomaly.key] = outcome

        return result

    async def notify_failed_run(self, db: AsyncSession, job: Job, run: Run) -> dict[str, bool]:
        """Page a job's recipients about a reported failure. Not deduplicated."""
        if not self.config.enabled or not job.active:
            return {}

        detail = f"Run #{run.id} failed"
        if run.message:
            detail += f": {run.message}"
        if run.duration_s is not None:
            detail += f" (after {run.duration_s:.1f}s)"

        alert = Alert(
            job_name=job.name,
            kind=AnomalyKind.FAILED,
            severity=job.severity,
            detail=detail,
            run_id=run.id,
            manual_trigger_url=job.manual_trigger_url,
        )
        return await self.notify(await self.recipients_for(db, job), alert)
