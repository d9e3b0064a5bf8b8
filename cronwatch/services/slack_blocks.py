"""Block Kit builders for alert, digest, webhook and App Home messages."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from cronwatch.core.datetime_utils import format_duration, utc_now
from cronwatch.models.run import Run, RunStatus
from cronwatch.services.health import AnomalyKind, JobHealth

if TYPE_CHECKING:
    from cronwatch.services.digest import DigestRow
    from cronwatch.services.notifications import Alert
    from cronwatch.services.webhook_inbox import WebhookMessage

KIND_EMOJI = {
    AnomalyKind.MISSED: ":hourglass:",
    AnomalyKind.STUCK: ":warning:",
    AnomalyKind.FAILED: ":x:",
}

SEVERITY_EMOJI = {
    "low": ":large_blue_circle:",
    "medium": ":large_orange_circle:",
    "high": ":red_circle:",
}

STATUS_EMOJI = {
    RunStatus.STARTED: ":arrows_counterclockwise:",
    RunStatus.SUCCESS: ":white_check_mark:",
    RunStatus.FAILED: ":x:",
    RunStatus.MISSED: ":hourglass:",
}


def alert_text(alert: Alert) -> str:
    """Plain-text fallback used for notifications."""
    return f"[{alert.severity.value}] {alert.job_name} {alert.kind.value}: {alert.detail}"


def build_alert_blocks(alert: Alert) -> list[dict]:
    """Blocks for one missed/stuck/failed alert."""
    emoji = KIND_EMOJI.get(alert.kind, ":bell:")
    blocks: list[dict] = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"{emoji} *`{alert.job_name}` is {alert.kind.value}*\n{alert.detail}",
            },
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": (
                        f"{SEVERITY_EMOJI[alert.severity.value]} severity *{alert.severity.value}*"
                        f"  |  {alert.detected_at:%Y-%m-%d %H:%M:%S} UTC"
                    ),
                }
            ],
        },
    ]

    if alert.manual_trigger_url:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Run manually", "emoji": True},
                        "url": alert.manual_trigger_url,
                        "action_id": "manual_trigger",
                    }
                ],
            }
        )

    return blocks


def build_digest_blocks(rows: list[DigestRow], since: datetime) -> list[dict]:
    """Blocks for the daily per-job run summary."""
    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": ":bar_chart: Cron summary", "emoji": True},
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Runs since {since:%Y-%m-%d %H:%M} UTC"}],
        },
    ]

    if not rows:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": "_No runs reported._"}})
        return blocks

    by_job: dict[str, list[str]] = {}
    for row in rows:
        emoji = STATUS_EMOJI.get(row.status, "")
        by_job.setdefault(row.job_name, []).append(f"{emoji} {row.status.value}: {row.count}")

    lines = [f"*{job}*  " + "  ".join(parts) for job, parts in by_job.items()]
    blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}})
    return blocks


def build_webhook_blocks(message: WebhookMessage) -> list[dict]:
    """Blocks for an ad-hoc webhook message."""
    return [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*Webhook Message from {message.source}*\n{message.message}",
            },
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"{message.timestamp:%Y-%m-%d %H:%M:%S} UTC"}],
        },
    ]


def _job_line(row: JobHealth, now: datetime) -> str:
    if row.anomalies:
        kinds = ", ".join(a.kind.value for a in row.anomalies)
        prefix = f":rotating_light: *{row.job.name}* ({kinds})"
    else:
        prefix = f":large_green_circle: *{row.job.name}*"

    run: Run | None = row.latest_run
    if run is None:
        return f"{prefix}  never reported"
    ago = format_duration((now - run.created_at).total_seconds())
    return f"{prefix}  last {STATUS_EMOJI.get(run.status, '')} {run.status.value} {ago} ago"


def status_lines(rows: list[JobHealth], now: datetime | None = None) -> list[str]:
    """One mrkdwn line per job, used by `/cron status` and the App Home."""
    now = now or utc_now()
    return [_job_line(row, now) for row in rows]


def build_home_view(
    rows: list[JobHealth],
    messages: list[WebhookMessage],
    uptime_seconds: float,
    is_admin: bool,
) -> dict:
    """App Home dashboard: job health, recent webhook messages, uptime."""
    unhealthy = sum(1 for row in rows if not row.is_healthy)

    blocks: list[dict] = [
        {"type": "header", "text": {"type": "plain_text", "text": "Cron jobs"}},
        {
            "type": "section",
            "fields": [
                {
                    "type": "mrkdwn",
                    "text": f":large_green_circle: *Running* for {format_duration(uptime_seconds)}",
                },
                {"type": "mrkdwn", "text": f"*Jobs:* {len(rows)}  |  *Unhealthy:* {unhealthy}"},
            ],
        },
        {"type": "divider"},
    ]

    lines = status_lines(rows)
    blocks.append(
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": "\n".join(lines) or "_No jobs registered._"},
        }
    )

    blocks.append({"type": "divider"})
    blocks.append({"type": "header", "text": {"type": "plain_text", "text": "Recent webhook messages"}})
    if messages:
        for message in messages:
            blocks.append(
                {
                    "type": "context",
                    "elements": [
                        {
                            "type": "mrkdwn",
                            "text": f"*{message.source}* {message.timestamp:%H:%M}: {message.message[:200]}",
                        }
                    ],
                }
            )
    else:
        blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": "_None yet._"}]})

    if is_admin:
        blocks.append({"type": "divider"})
        blocks.append(
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": ":lock: You are an admin. Manage jobs with `/cron help`.",
                    }
                ],
            }
        )

    return {"type": "home", "blocks": blocks}
