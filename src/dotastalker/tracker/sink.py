"""Contract between the tracker and whatever delivers notifications.

The tracker only needs to create a message in a channel and later edit it, so
the chat integration can be swapped (or faked in tests) behind this protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class NotificationHandle:
    """Reference to a delivered notification, needed to edit it later."""

    channel_id: int
    message_id: int


@dataclass(frozen=True)
class ContentField:
    name: str
    value: str
    inline: bool = True


@dataclass(frozen=True)
class NotificationContent:
    """Ordered, platform-neutral notification body."""

    title: str
    fields: tuple[ContentField, ...] = field(default_factory=tuple)
    footer: str = ""
    timestamp: datetime | None = None


class NotificationSink(Protocol):
    """Notification operations required by the tracker.

    Both calls raise ``NotificationError`` once the implementation has given up.
    """

    async def create(self, channel_id: int, content: NotificationContent) -> NotificationHandle:
        ...

    async def edit(self, handle: NotificationHandle, content: NotificationContent) -> None:
        ...
