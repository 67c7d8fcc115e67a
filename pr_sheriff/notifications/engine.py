"""Notification delivery with retry and exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from .slack import SlackMessage

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    async def send_message(self, message: SlackMessage) -> None: ...


@dataclass
class RetryConfig:
    """Retry policy for outbound notifications."""

    max_attempts: int = 3
    backoff_ms: int = 1000

    def delay_seconds(self, attempt: int) -> float:
        """Wait after the 1-indexed ``attempt`` failed."""
        return self.backoff_ms * 2 ** (attempt - 1) / 1000


class NotificationEngine:
    """
    Sends messages through a sender, retrying failures.

    Raises the last error once ``max_attempts`` have failed; callers decide
    whether that aborts their unit of work.
    """

    def __init__(
        self,
        sender: MessageSender,
        retry: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.sender = sender
        self.retry = retry or RetryConfig()
        self._sleep = sleep

    async def send(self, message: SlackMessage) -> None:
        max_attempts = max(1, self.retry.max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                await self.sender.send_message(message)
                return
            except Exception as e:
                logger.warning(
                    f"Failed to send notification to {message.target} "
                    f"(attempt {attempt}/{max_attempts}): {e}"
                )
                if attempt == max_attempts:
                    logger.error(
                        f"Giving up on notification to {message.target} "
                        f"after {max_attempts} attempts"
                    )
                    raise
                await self._sleep(self.retry.delay_seconds(attempt))
