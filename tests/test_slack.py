"""Tests for the Slack client and message formatting."""

import json

import httpx
import pytest
from factories import REPO, make_config, make_pr, member

from pr_sheriff.errors import SlackAPIError
from pr_sheriff.models import TeamMember
from pr_sheriff.notifications.messages import (
    PRLink,
    format_blame_message,
    format_channel_reminder_message,
    format_new_pr_message,
    format_reminder_message,
)
from pr_sheriff.notifications.slack import SlackClient, SlackMessage


def slack_client(handler) -> tuple[SlackClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return SlackClient("xoxb-test", http_client=http_client, base_url="https://slack.test/api"), requests


class TestSlackClient:
    """Tests for posting through the Slack Web API."""

    @pytest.mark.asyncio
    async def test_channel_message(self) -> None:
        client, requests = slack_client(lambda r: httpx.Response(200, json={"ok": True}))

        await client.send_message(SlackMessage(text="hello", channel="C1"))

        assert len(requests) == 1
        assert requests[0].url == "https://slack.test/api/chat.postMessage"
        assert requests[0].headers["Authorization"] == "Bearer xoxb-test"
        assert json.loads(requests[0].content) == {"channel": "C1", "text": "hello"}

    @pytest.mark.asyncio
    async def test_direct_message_opens_conversation(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("conversations.open"):
                return httpx.Response(200, json={"ok": True, "channel": {"id": "D123"}})
            return httpx.Response(200, json={"ok": True})

        client, requests = slack_client(handler)

        await client.send_message(SlackMessage(text="psst", user="U_BOB"))

        assert [r.url.path for r in requests] == ["/api/conversations.open", "/api/chat.postMessage"]
        assert json.loads(requests[0].content) == {"users": "U_BOB"}
        assert json.loads(requests[1].content)["channel"] == "D123"

    @pytest.mark.asyncio
    async def test_ok_false_raises(self) -> None:
        client, _ = slack_client(
            lambda r: httpx.Response(200, json={"ok": False, "error": "channel_not_found"})
        )

        with pytest.raises(SlackAPIError, match="channel_not_found"):
            await client.send_message(SlackMessage(text="hello", channel="C404"))

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        client, _ = slack_client(lambda r: httpx.Response(500, text="boom"))

        with pytest.raises(SlackAPIError) as exc_info:
            await client.send_message(SlackMessage(text="hello", channel="C1"))

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_message_without_target(self) -> None:
        client, requests = slack_client(lambda r: httpx.Response(200, json={"ok": True}))

        with pytest.raises(SlackAPIError):
            await client.send_message(SlackMessage(text="lost"))
        assert requests == []


class TestMessages:
    """Tests for message formatting."""

    def test_new_pr_message(self) -> None:
        pr = make_pr(12, author="alice", labels=["backend"])
        pr.body = "Adds caching"
        message = format_new_pr_message(
            REPO, pr, make_config(), [member("bob"), TeamMember("outsider", "")]
        )

        assert message.channel == "C_NEW_PRS"
        assert "acme/api" in message.text
        assert "#12" in message.text
        assert "<@U_BOB>" in message.text
        assert "@outsider" in message.text
        assert "Labels: backend" in message.text
        assert "Adds caching" in message.text

    def test_new_pr_message_respects_toggles(self) -> None:
        config = make_config()
        config.new_pr_notifications.include_labels = False
        config.new_pr_notifications.include_reviewers = False
        pr = make_pr(12, labels=["backend"])

        message = format_new_pr_message(REPO, pr, config, [member("bob")])

        assert "Labels" not in message.text
        assert "U_BOB" not in message.text

    def test_reminder_messages(self) -> None:
        links = [PRLink.from_pull_request(REPO, make_pr(1)), PRLink.from_pull_request(REPO, make_pr(2))]

        dm = format_reminder_message(links, "U_BOB")
        channel = format_channel_reminder_message(links, "outsider", "C1")

        assert dm.user == "U_BOB"
        assert "2 PR(s)" in dm.text
        assert "acme/api#1" in dm.text
        assert channel.channel == "C1"
        assert "@outsider" in channel.text

    def test_blame_message(self) -> None:
        links = [PRLink.from_pull_request(REPO, make_pr(3))]
        message = format_blame_message("acme/api", links, 5, "C_BLAME")

        assert message.channel == "C_BLAME"
        assert "5+ days" in message.text
        assert "acme/api#3" in message.text
