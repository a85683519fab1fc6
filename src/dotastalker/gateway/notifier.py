"""Telegram implementation of the tracker's notification sink."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

import structlog
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, NetworkError, RetryAfter, TelegramError

from ..exceptions import NotificationError
from ..tracker.sink import NotificationContent, NotificationHandle
from .formatters import render_notification

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class TelegramNotifier:
    """Create and edit match notifications with bounded latency.

    Every Bot API call is capped by ``timeout_seconds``. Timeouts, network
    errors and flood-control responses are retried up to ``max_retries`` times
    with exponential backoff; other API errors fail immediately.
    """

    def __init__(
        self,
        bot: Bot,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff_base_seconds: float = 0.5,
    ):
        self.bot = bot
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds

    def on_config_updated(self, key: str, value: Any) -> None:
        """Config subscriber for the notifier.* dynamic keys."""
        if key == "notifier.timeout_seconds":
            self.timeout_seconds = value
        elif key == "notifier.max_retries":
            self.max_retries = value
        elif key == "notifier.backoff_base_seconds":
            self.backoff_base_seconds = value

    async def create(self, channel_id: int, content: NotificationContent) -> NotificationHandle:
        text = render_notification(content)

        async def _send():
            return await self.bot.send_message(chat_id=channel_id, text=text, parse_mode=ParseMode.HTML)

        message = await self._call("create", channel_id, _send)
        logger.debug("notification_created", channel_id=channel_id, message_id=message.message_id)
        return NotificationHandle(channel_id=channel_id, message_id=message.message_id)

    async def edit(self, handle: NotificationHandle, content: NotificationContent) -> None:
        text = render_notification(content)

        async def _edit():
            try:
                await self.bot.edit_message_text(
                    text=text,
                    chat_id=handle.channel_id,
                    message_id=handle.message_id,
                    parse_mode=ParseMode.HTML,
                )
            except BadRequest as e:
                # Same snapshot content twice in a row.
                if "not modified" in str(e).lower():
                    logger.debug("notification_unchanged", channel_id=handle.channel_id)
                    return
                raise

        await self._call("edit", handle.channel_id, _edit)

    def _backoff(self, attempt: int) -> float:
        return self.backoff_base_seconds * 2 ** (attempt - 1)

    async def _call(self, operation: str, channel_id: int, request: Callable[[], Awaitable[T]]) -> T:
        attempts = self.max_retries + 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(request(), timeout=self.timeout_seconds)
            except RetryAfter as e:
                delay = max(self._backoff(attempt), _seconds(e.retry_after))
                last_error = e
            except (BadRequest, Forbidden) as e:
                raise NotificationError(f"Telegram rejected {operation} in chat {channel_id}: {e}") from e
            except (asyncio.TimeoutError, NetworkError) as e:
                delay = self._backoff(attempt)
                last_error = e
            except TelegramError as e:
                raise NotificationError(f"Telegram {operation} failed in chat {channel_id}: {e}") from e

            logger.warning(
                "notification_attempt_failed",
                operation=operation,
                channel_id=channel_id,
                attempt=attempt,
                error=str(last_error),
                error_type=type(last_error).__name__,
            )
            if attempt < attempts:
                await asyncio.sleep(delay)

        raise NotificationError(
            f"Telegram {operation} in chat {channel_id} failed after {attempts} attempts: {last_error}"
        ) from last_error
