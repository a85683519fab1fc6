"""Shared fixtures: GSI payload factory and an in-memory notification sink."""

import itertools
from typing import Any

import pytest

from src.dotastalker.exceptions import NotificationError
from src.dotastalker.tracker.sink import NotificationContent, NotificationHandle

STEAM_ID = "76561198000000001"


def make_payload(
    token: str | None = None,
    steam_id: str = STEAM_ID,
    matchid: str = "123",
    game_state: str = "DOTA_GAMERULES_STATE_GAME_IN_PROGRESS",
    customgamename: str = "",
    clock_time: int = 300,
) -> dict[str, Any]:
    """A GSI document as sent by a client that is playing a match."""
    payload: dict[str, Any] = {
        "provider": {"name": "Dota 2", "appid": 570},
        "map": {
            "name": "start",
            "matchid": matchid,
            "game_state": game_state,
            "customgamename": customgamename,
            "clock_time": clock_time,
            "radiant_score": 4,
            "dire_score": 7,
        },
        "player": {
            "steamid": steam_id,
            "name": "Miracle",
            "team_name": "radiant",
            "gold": 1200,
            "kills": 3,
            "deaths": 1,
            "assists": 5,
            "last_hits": 80,
            "denies": 6,
            "xpm": 520,
            "gpm": 480,
        },
        "hero": {
            "name": "npc_dota_hero_shadow_fiend",
            "level": 11,
            "health": 900,
            "max_health": 1400,
            "mana": 300,
            "max_mana": 700,
        },
    }
    if token is not None:
        payload["auth"] = {"token": token}
    return payload


class FakeSink:
    """Records create/edit calls; channels in ``failing`` raise NotificationError."""

    def __init__(self):
        self.creates: list[tuple[int, NotificationContent]] = []
        self.edits: list[tuple[NotificationHandle, NotificationContent]] = []
        self.failing: set[int] = set()
        self._message_ids = itertools.count(1000)

    async def create(self, channel_id: int, content: NotificationContent) -> NotificationHandle:
        self.creates.append((channel_id, content))
        if channel_id in self.failing:
            raise NotificationError(f"create failed in {channel_id}")
        return NotificationHandle(channel_id=channel_id, message_id=next(self._message_ids))

    async def edit(self, handle: NotificationHandle, content: NotificationContent) -> None:
        self.edits.append((handle, content))
        if handle.channel_id in self.failing:
            raise NotificationError(f"edit failed in {handle.channel_id}")

    def reset(self) -> None:
        self.creates.clear()
        self.edits.clear()


@pytest.fixture
def fake_sink():
    return FakeSink()
