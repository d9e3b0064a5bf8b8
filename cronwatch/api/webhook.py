"""
Generic inbound webhook.

Anything that can POST JSON (CI, deploy scripts, other services) can drop a
message into the Slack channel and the App Home feed without registering a
job.
"""

from fastapi import APIRouter, HTTPException, Request, status

from cronwatch.core.logging import get_logger
from cronwatch.core.rate_limit import limiter, webhook_rate_limit
from cronwatch.dependencies import Config, Inbox, NotifierDep
from cronwatch.schemas.webhook import (
    WebhookAccepted,
    WebhookCreate,
    WebhookMessageResponse,
    WebhookMessagesResponse,
)
from cronwatch.services.slack_blocks import build_webhook_blocks

logger = get_logger(__name__)
router = APIRouter()


@router.post("/webhook", response_model=WebhookAccepted)
@limiter.limit(webhook_rate_limit)
async def receive_webhook(
    request: Request,
    body: WebhookCreate,
    inbox: Inbox,
    notifier: NotifierDep,
    config: Config,
) -> WebhookAccepted:
    """
    Store a message in the inbox and post it to Slack.

    Posts to `channel` if given, else webhook.default_channel; with neither
    the message is only kept in the inbox.
    """
    if not body.message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message is required",
        )

    entry = inbox.add(body.message, body.source)
    log = logger.bind(message_id=entry.id, source=entry.source)

    channel = body.channel or config.webhook.default_channel
    if channel:
        # DeliveryFailure propagates as 502; the message stays in the inbox
        await notifier.post(
            channel,
            f"Webhook from {entry.source}: {entry.message}",
            build_webhook_blocks(entry),
        )
        log = log.bind(channel=channel)

    log.info("webhook_received")
    return WebhookAccepted(id=entry.id)


@router.get("/webhook-messages", response_model=WebhookMessagesResponse)
async def list_webhook_messages(inbox: Inbox) -> WebhookMessagesResponse:
    """Buffered webhook messages, oldest first."""
    messages = [
        WebhookMessageResponse(id=m.id, message=m.message, source=m.source, timestamp=m.timestamp)
        for m in inbox.all()
    ]
    return WebhookMessagesResponse(messages=messages, count=len(messages))


@router.delete("/webhook-messages")
async def clear_webhook_messages(inbox: Inbox) -> dict[str, bool | str]:
    """Empty the inbox."""
    inbox.clear()
    logger.info("webhook_messages_cleared")
    return {"success": True, "message": "All webhook messages cleared"}
