"""Slack Web API client."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import DEFAULT_SLACK_API_BASE_URL
from ..errors import SlackAPIError

logger = logging.getLogger(__name__)


@dataclass
class SlackMessage:
    """A message for a channel or, when ``user`` is set, a direct message."""

    text: str
    channel: str | None = None
    user: str | None = None
    blocks: list[dict[str, Any]] = field(default_factory=list)

    @property
    def target(self) -> str:
        return self.user or self.channel or ""


class SlackClient:
    """Minimal Slack Web API client for posting messages."""

    def __init__(
        self,
        token: str,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_SLACK_API_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                f"{self.base_url}/{method}",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
            )
        except httpx.HTTPError as e:
            raise SlackAPIError(method, str(e)) from e

        if response.status_code >= 400:
            raise SlackAPIError(method, response.text[:200], response.status_code)

        data = response.json()
        if not data.get("ok", False):
            raise SlackAPIError(method, data.get("error", "unknown_error"), response.status_code)
        return data

    async def open_direct_message(self, user_id: str) -> str:
        """Resolve the DM channel id for a Slack user."""
        data = await self._call("conversations.open", {"users": user_id})
        return data["channel"]["id"]

    async def send_message(self, message: SlackMessage) -> None:
        """
        Post a message.

        Direct messages take two calls (open the conversation, then post);
        callers retry the whole operation as one unit.

        Raises:
            SlackAPIError: If Slack rejects either call.
        """
        if message.user:
            channel = await self.open_direct_message(message.user)
        elif message.channel:
            channel = message.channel
        else:
            raise SlackAPIError("chat.postMessage", "no channel or user given")

        payload: dict[str, Any] = {"channel": channel, "text": message.text}
        if message.blocks:
            payload["blocks"] = message.blocks

        await self._call("chat.postMessage", payload)
        logger.debug(f"Slack message sent to {message.target}")
