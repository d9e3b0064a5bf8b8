"""Daily digest: per-job run counts by status over a trailing window."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.config import DigestConfig
from cronwatch.core.datetime_utils import start_of_local_day
from cronwatch.core.errors import DeliveryFailure
from cronwatch.core.logging import get_logger
from cronwatch.models.run import RunStatus
from cronwatch.services.ledger import counts_by_status_since
from cronwatch.services.notifications import Notifier
from cronwatch.services.slack_blocks import build_digest_blocks

logger = get_logger(__name__)


@dataclass(frozen=True)
class DigestRow:
    job_name: str
    status: RunStatus
    count: int


async def build_digest(
    db: AsyncSession,
    since: datetime | None = None,
    timezone: str = "UTC",
    now: datetime | None = None,
) -> tuple[datetime, list[DigestRow]]:
    """
    Count runs per job and status since `since`.

    Args:
        db: Database session
        since: Window start (naive UTC); defaults to local midnight in `timezone`
        timezone: Reference clock for the default window
        now: Reference instant for the default window (for tests)

    Returns:
        (window start, rows ordered by job name then status)
    """
    if since is None:
        since = start_of_local_day(timezone, now)

    counts = await counts_by_status_since(db, since)
    rows = [DigestRow(job_name=c.job_name, status=c.status, count=c.count) for c in counts]
    return since, rows


async def post_daily_digest(
    db: AsyncSession,
    notifier: Notifier,
    config: DigestConfig,
    now: datetime | None = None,
) -> bool:
    """
    Post today's digest to the configured channel.

    `config.enabled` only controls scheduling; a manual post always goes out
    when a channel is configured.

    Returns:
        True if the digest was posted
    """
    if not config.channel:
        logger.debug("digest_no_channel")
        return False

    since, rows = await build_digest(db, timezone=config.timezone, now=now)
    text = f"Cron summary: {sum(r.count for r in rows)} runs across {len({r.job_name for r in rows})} jobs"

    try:
        await notifier.post(config.channel, text, build_digest_blocks(rows, since))
    except DeliveryFailure as e:
        logger.bind(channel=config.channel, error=e.reason).error("digest_post_failed")
        return False

    logger.bind(channel=config.channel, rows=len(rows)).info("digest_posted")
    return True
