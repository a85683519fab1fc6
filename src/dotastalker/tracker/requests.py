"""Control requests sent from the command layer to the tracker.

Each request carries a one-shot reply future that the tracker resolves once
the mutation has been persisted (or fails with the reason it was rejected).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Union

import structlog

logger = structlog.get_logger(__name__)


def _new_reply() -> asyncio.Future[Any]:
    return asyncio.get_running_loop().create_future()


@dataclass
class RegisterUser:
    """Issue a fresh token for ``user_id`` playing as ``steam_id``. Replies with the token."""

    user_id: int
    steam_id: str
    reply: asyncio.Future[str] = field(default_factory=_new_reply, repr=False)


@dataclass
class BindChannel:
    """Approve ``channel_id`` as a notification destination."""

    channel_id: int
    reply: asyncio.Future[None] = field(default_factory=_new_reply, repr=False)


@dataclass
class AddTrack:
    """Send ``user_id``'s matches to ``channel_id``. Fails if the channel is unbound."""

    user_id: int
    channel_id: int
    reply: asyncio.Future[None] = field(default_factory=_new_reply, repr=False)


@dataclass
class RemoveTrack:
    """Stop sending ``user_id``'s matches to ``channel_id``."""

    user_id: int
    channel_id: int
    reply: asyncio.Future[None] = field(default_factory=_new_reply, repr=False)


ControlRequest = Union[RegisterUser, BindChannel, AddTrack, RemoveTrack]


class TrackerClient:
    """Awaitable facade over the tracker's control queue."""

    def __init__(self, control_queue: asyncio.Queue[ControlRequest]):
        self.control_queue = control_queue

    async def _submit(self, request: ControlRequest) -> Any:
        logger.debug("control_request_submitted", request=type(request).__name__)
        await self.control_queue.put(request)
        return await request.reply

    async def register_user(self, user_id: int, steam_id: str) -> str:
        """Register a client identity and return its token."""
        return await self._submit(RegisterUser(user_id=user_id, steam_id=steam_id))

    async def bind_channel(self, channel_id: int) -> None:
        await self._submit(BindChannel(channel_id=channel_id))

    async def add_track(self, user_id: int, channel_id: int) -> None:
        """Raises ``ChannelNotBoundError`` if the channel was never bound."""
        await self._submit(AddTrack(user_id=user_id, channel_id=channel_id))

    async def remove_track(self, user_id: int, channel_id: int) -> None:
        await self._submit(RemoveTrack(user_id=user_id, channel_id=channel_id))
