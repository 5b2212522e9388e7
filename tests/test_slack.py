"""Tests for Slack review notifications."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from design_studio.config import Config
from design_studio.core.studio import Studio
from design_studio.integrations import slack as slack_mod
from design_studio.integrations.slack import SlackError, format_review_notification, send_message
from design_studio.models import DesignRequest


def _request(**kwargs):
    return DesignRequest(id="r1", project_id="site", project_path="/p/site", prompt="Make it pop", **kwargs)


class TestFormat:
    def test_ready_for_review(self):
        [block] = format_review_notification(_request())
        text = block["text"]["text"]
        assert text.startswith(":eyes: *Request ready for review*")
        assert ">Make it pop" in text
        assert "`site`" in text and "`r1`" in text

    def test_failed_request(self):
        [block] = format_review_notification(_request(error="Claude exited with code 2"))
        assert block["text"]["text"].startswith(":x: *Request needs attention*\nClaude exited with code 2")

    def test_long_prompt_truncated(self):
        request = DesignRequest(id="r1", project_id="p", project_path="/p", prompt="x" * 500)
        text = format_review_notification(request)[0]["text"]["text"]
        assert "x" * 197 + "..." in text
        assert "x" * 198 not in text


class TestSend:
    def test_requires_token(self):
        with pytest.raises(SlackError):
            send_message(None, "#design", "hi")

    def test_posts_message(self):
        with patch("slack_sdk.WebClient") as client_cls:
            client_cls.return_value.chat_postMessage.return_value = {"channel": "C1", "ts": "1.2"}
            ts = send_message("xoxb-test", "#design", "hi", blocks=[])
        client_cls.assert_called_once_with(token="xoxb-test")
        client_cls.return_value.chat_postMessage.assert_called_once_with(
            channel="#design", text="hi", blocks=[]
        )
        assert ts == "1.2"

    def test_api_error(self):
        from slack_sdk.errors import SlackApiError

        with patch("slack_sdk.WebClient") as client_cls:
            client_cls.return_value.chat_postMessage.side_effect = SlackApiError(
                "failed", {"ok": False, "error": "channel_not_found"}
            )
            with pytest.raises(SlackError, match="channel_not_found"):
                send_message("xoxb-test", "#nowhere", "hi")


@pytest.fixture
def claude_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


class TestStudioNotification:
    @pytest.mark.asyncio
    async def test_sends_when_configured(self, claude_dir):
        config = Config(
            claude_dir=claude_dir,
            screenshots_enabled=False,
            slack_bot_token="xoxb-test",
            slack_channel="#design",
        )
        studio = Studio(config)
        with patch.object(slack_mod, "send_message") as send:
            await studio._notify_review(_request())
        send.assert_called_once()
        token, channel, text, blocks = send.call_args.args
        assert (token, channel) == ("xoxb-test", "#design")
        assert "r1" in text
        assert blocks == format_review_notification(_request())

    @pytest.mark.asyncio
    async def test_skipped_without_channel(self, claude_dir):
        studio = Studio(Config(claude_dir=claude_dir, screenshots_enabled=False, slack_bot_token="x"))
        with patch.object(slack_mod, "send_message") as send:
            await studio._notify_review(_request())
        send.assert_not_called()
