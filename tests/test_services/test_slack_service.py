"""Tests for the Slack Web API client and notifier."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from cronwatch.core.errors import DeliveryFailure
from cronwatch.models import Severity
from cronwatch.services.health import AnomalyKind
from cronwatch.services.notifications import Alert, SlackNotifier
from cronwatch.services.slack_blocks import build_alert_blocks
from cronwatch.services.slack_service import SlackSendResult, is_user_id, post_message

pytestmark = pytest.mark.asyncio

_RealAsyncClient = httpx.AsyncClient


def mock_slack(handler):
    """Route every httpx.AsyncClient created by slack_service through `handler`."""

    def factory(*args, **kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return patch("cronwatch.services.slack_service.httpx.AsyncClient", side_effect=factory)


def make_alert(**overrides) -> Alert:
    fields = {
        "job_name": "backup",
        "kind": AnomalyKind.STUCK,
        "severity": Severity.HIGH,
        "detail": "Run #4 started 31m ago without finishing (max runtime 30m)",
        "run_id": 4,
    }
    fields.update(overrides)
    return Alert(**fields)


class TestIsUserId:
    async def test_user_ids(self):
        """U and W ids are users."""
        assert is_user_id("U123")
        assert is_user_id("W123")

    async def test_channel_ids(self):
        """Should treat channel ids and names as channels."""
        assert not is_user_id("C123")
        assert not is_user_id("")


class TestPostMessage:
    async def test_channel_post(self):
        """Should post straight to a channel."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True, "ts": "1.0"})

        with mock_slack(handler):
            result = await post_message("C-OPS", "hello", token="xoxb-test")

        assert result == SlackSendResult(success=True, channel="C-OPS", ts="1.0")
        assert calls == [("/api/chat.postMessage", {"channel": "C-OPS", "text": "hello"})]

    async def test_user_gets_dm(self):
        """User recipients get a DM channel first."""
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            if request.url.path.endswith("conversations.open"):
                return httpx.Response(200, json={"ok": True, "channel": {"id": "D42"}})
            assert json.loads(request.content)["channel"] == "D42"
            return httpx.Response(200, json={"ok": True, "ts": "2.0"})

        with mock_slack(handler):
            result = await post_message("U1", "hello", token="xoxb-test")

        assert result.success
        assert result.channel == "D42"
        assert paths == ["/api/conversations.open", "/api/chat.postMessage"]

    async def test_slack_error(self):
        """Slack ok=false becomes a failed result."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False, "error": "channel_not_found"})

        with mock_slack(handler):
            result = await post_message("C-GONE", "hello", token="xoxb-test")

        assert not result.success
        assert result.error == "channel_not_found"

    async def test_transport_error_not_raised(self):
        """Should return a failed result on transport errors."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom")

        with mock_slack(handler):
            result = await post_message("C-OPS", "hello", token="xoxb-test")

        assert not result.success

    async def test_missing_token(self):
        """Missing bot token fails without a request."""
        with patch("cronwatch.services.slack_service.get_settings") as settings:
            settings.return_value.slack_bot_token = ""
            result = await post_message("C-OPS", "hello")

        assert not result.success
        assert "not configured" in result.error


class TestSlackNotifier:
    async def test_failure_raises_delivery_failure(self):
        """Notifier raises DeliveryFailure on failure."""
        failed = SlackSendResult(success=False, error="not_in_channel")
        with patch("cronwatch.services.notifications.post_message", AsyncMock(return_value=failed)):
            with pytest.raises(DeliveryFailure) as exc_info:
                await SlackNotifier(token="xoxb-test").send_alert("C-OPS", make_alert())

        assert exc_info.value.recipient == "C-OPS"
        assert exc_info.value.reason == "not_in_channel"

    async def test_success(self):
        """Should deliver through post_message."""
        ok = SlackSendResult(success=True, channel="C-OPS", ts="1.0")
        post = AsyncMock(return_value=ok)
        with patch("cronwatch.services.notifications.post_message", post):
            await SlackNotifier(token="xoxb-test").send_alert("C-OPS", make_alert())

        args, kwargs = post.call_args
        assert args[0] == "C-OPS"
        assert "backup" in args[1]
        assert kwargs["token"] == "xoxb-test"


class TestAlertBlocks:
    async def test_manual_trigger_button(self):
        """Alert blocks include a trigger button when a URL is set."""
        blocks = build_alert_blocks(make_alert(manual_trigger_url="https://ci.example.com/run"))

        assert blocks[-1]["type"] == "actions"
        assert blocks[-1]["elements"][0]["url"] == "https://ci.example.com/run"

    async def test_no_button_without_url(self):
        """Should omit the button without a URL."""
        blocks = build_alert_blocks(make_alert())

        assert all(block["type"] != "actions" for block in blocks)
