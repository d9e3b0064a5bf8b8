"""Slack slash command and Events API endpoints."""

from typing import Any
from urllib.parse import parse_qs

from fastapi import APIRouter, HTTPException, Request, status

from cronwatch.core.logging import get_logger
from cronwatch.core.security import verify_slack_signature
from cronwatch.dependencies import AppSettings, DBSession, Inbox
from cronwatch.services.admins import is_admin
from cronwatch.services.commands import CommandFailed, handle_cron_command
from cronwatch.services.health import job_health
from cronwatch.services.slack_blocks import build_home_view
from cronwatch.services.slack_service import publish_home

logger = get_logger(__name__)
router = APIRouter()


async def _verified_body(request: Request, signing_secret: str) -> bytes:
    """Read the raw body and reject the request unless Slack signed it."""
    body = await request.body()
    if not verify_slack_signature(
        signing_secret,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
        body,
    ):
        logger.bind(path=request.url.path).warning("slack_signature_invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Slack signature",
        )
    return body


@router.post("/commands")
async def slash_command(request: Request, db: DBSession, settings: AppSettings) -> dict[str, str]:
    """
    Handle `/cron ...`.

    Slack posts application/x-www-form-urlencoded; the response is shown
    only to the invoking user.
    """
    body = await _verified_body(request, settings.slack_signing_secret)
    form = {key: values[0] for key, values in parse_qs(body.decode()).items()}

    user_id = form.get("user_id", "")
    try:
        response = await handle_cron_command(db, user_id, form.get("text", ""))
    except CommandFailed as e:
        await db.rollback()
        return e.response.to_dict()
    return response.to_dict()


@router.post("/events")
async def slack_events(
    request: Request,
    db: DBSession,
    settings: AppSettings,
    inbox: Inbox,
) -> dict[str, Any]:
    """Events API: URL verification and App Home."""
    body = await _verified_body(request, settings.slack_signing_secret)
    payload = await request.json()

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge", "")}

    # Slack retries when we are slow; the first delivery already did the work
    if request.headers.get("X-Slack-Retry-Num"):
        return {"ok": True}

    event = payload.get("event") or {}
    if event.get("type") == "app_home_opened" and event.get("tab", "home") == "home":
        user_id = event.get("user", "")
        view = build_home_view(
            rows=await job_health(db),
            messages=inbox.recent(5),
            uptime_seconds=inbox.uptime_seconds,
            is_admin=await is_admin(db, user_id),
        )
        result = await publish_home(user_id, view)
        logger.bind(user_id=user_id, success=result.success, error=result.error).info(
            "app_home_published"
        )
    else:
        logger.bind(event_type=event.get("type"), size=len(body)).debug("slack_event_ignored")

    return {"ok": True}
