"""
Notification channel used by the alert dispatcher.

The dispatcher only decides that an alert fires and who receives it. A
`Notifier` delivers one alert to one recipient and raises DeliveryFailure
when it cannot; SlackNotifier is the production implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from cronwatch.core.datetime_utils import utc_now
from cronwatch.core.errors import DeliveryFailure
from cronwatch.core.logging import get_logger
from cronwatch.models.job import Severity
from cronwatch.services.health import AnomalyKind
from cronwatch.services.slack_blocks import alert_text, build_alert_blocks
from cronwatch.services.slack_service import post_message

logger = get_logger(__name__)


@dataclass(frozen=True)
class Alert:
    """What to tell recipients about one anomaly."""

    job_name: str
    kind: AnomalyKind
    severity: Severity
    detail: str
    run_id: int | None = None
    manual_trigger_url: str | None = None
    detected_at: datetime = field(default_factory=utc_now)


class Notifier(Protocol):
    """Delivery backend for alerts and plain channel messages."""

    async def send_alert(self, recipient: str, alert: Alert) -> None:
        """Deliver one alert; raise DeliveryFailure on failure."""
        ...

    async def post(self, channel: str, text: str, blocks: list[dict] | None = None) -> None:
        """Post a message to a channel; raise DeliveryFailure on failure."""
        ...


class SlackNotifier:
    """Deliver alerts as Slack messages (DM for user ids, post for channel ids)."""

    def __init__(self, token: str | None = None) -> None:
        self.token = token

    async def send_alert(self, recipient: str, alert: Alert) -> None:
        await self.post(recipient, alert_text(alert), build_alert_blocks(alert))

    async def post(self, channel: str, text: str, blocks: list[dict] | None = None) -> None:
        result = await post_message(channel, text, blocks=blocks, token=self.token)
        if not result.success:
            raise DeliveryFailure(channel, result.error or "unknown error")
        logger.bind(recipient=channel, ts=result.ts).debug("slack_message_sent")
