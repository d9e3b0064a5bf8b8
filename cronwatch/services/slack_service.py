"""
Slack Web API client for alerts, digests and the App Home dashboard.

Uses the bot token from SLACK_BOT_TOKEN. User ids (U..., W...) are messaged
through a DM channel opened with conversations.open; anything else is
treated as a channel id and posted to directly.
"""

from dataclasses import dataclass

import httpx

from cronwatch.config import get_settings
from cronwatch.core.logging import get_logger

logger = get_logger(__name__)

# Slack API endpoints
SLACK_CONVERSATIONS_OPEN_URL = "https://slack.com/api/conversations.open"
SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
SLACK_VIEWS_PUBLISH_URL = "https://slack.com/api/views.publish"


@dataclass
class SlackSendResult:
    """Result of a Slack API call that posts something."""

    success: bool
    channel: str | None = None
    ts: str | None = None
    error: str | None = None


def is_user_id(recipient: str) -> bool:
    """Slack user ids start with U (or W on Enterprise Grid)."""
    return recipient[:1] in ("U", "W")


def _auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json; charset=utf-8",
    }


async def open_dm_channel(client: httpx.AsyncClient, token: str, user_id: str) -> str | None:
    """
    Open a DM channel with a user.

    Returns:
        Channel ID if successful
    """
    try:
        resp = await client.post(
            SLACK_CONVERSATIONS_OPEN_URL,
            json={"users": user_id},
            headers=_auth_headers(token),
        )
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.bind(user_id=user_id, error=str(e)).error("slack_open_dm_error")
        return None

    if data.get("ok"):
        channel_id: str | None = data.get("channel", {}).get("id")
        return channel_id

    logger.bind(user_id=user_id, error=data.get("error")).warning("slack_open_dm_failed")
    return None


async def post_message(
    recipient: str,
    text: str,
    blocks: list[dict] | None = None,
    token: str | None = None,
) -> SlackSendResult:
    """
    Post a message to a channel or, for user ids, to the user's DM.

    Args:
        recipient: Slack channel id or user id
        text: Fallback text for notifications
        blocks: Optional Block Kit blocks
        token: Bot token (defaults to SLACK_BOT_TOKEN)

    Returns:
        SlackSendResult; never raises for Slack or transport errors
    """
    token = token or get_settings().slack_bot_token
    if not token:
        return SlackSendResult(success=False, error="Slack bot token not configured")

    async with httpx.AsyncClient(timeout=30.0) as client:
        channel_id: str | None = recipient
        if is_user_id(recipient):
            channel_id = await open_dm_channel(client, token, recipient)
            if not channel_id:
                return SlackSendResult(success=False, error="Could not open DM channel")

        payload: dict = {"channel": channel_id, "text": text}
        if blocks:
            payload["blocks"] = blocks

        try:
            resp = await client.post(
                SLACK_POST_MESSAGE_URL,
                json=payload,
                headers=_auth_headers(token),
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            return SlackSendResult(success=False, channel=channel_id, error=str(e))

    if data.get("ok"):
        return SlackSendResult(success=True, channel=channel_id, ts=data.get("ts"))
    return SlackSendResult(
        success=False,
        channel=channel_id,
        error=data.get("error", "Unknown error"),
    )


async def publish_home(user_id: str, view: dict, token: str | None = None) -> SlackSendResult:
    """Publish an App Home view for a user."""
    token = token or get_settings().slack_bot_token
    if not token:
        return SlackSendResult(success=False, error="Slack bot token not configured")

    async with httpx.AsyncClient(timeout=10.0) as client:
        try:
            resp = await client.post(
                SLACK_VIEWS_PUBLISH_URL,
                json={"user_id": user_id, "view": view},
                headers=_auth_headers(token),
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.bind(user_id=user_id, error=str(e)).error("slack_publish_home_error")
            return SlackSendResult(success=False, error=str(e))

    if not data.get("ok"):
        logger.bind(user_id=user_id, error=data.get("error")).warning("slack_publish_home_failed")
        return SlackSendResult(success=False, error=data.get("error", "Unknown error"))
    return SlackSendResult(success=True)
