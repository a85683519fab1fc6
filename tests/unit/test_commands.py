"""Unit tests for gateway command handlers."""

from unittest.mock import AsyncMock

import pytest

from src.dotastalker.exceptions import ChannelNotBoundError, PersistenceError
from src.dotastalker.gateway.commands import (
    SAVE_FAILED_REPLY,
    handle_bind_command,
    handle_register_command,
    handle_track_command,
    handle_untrack_command,
    normalize_steam_id,
)

GSI_URI = "http://stalker.example.com:3682/"


@pytest.fixture
def tracker():
    tracker = AsyncMock()
    tracker.register_user.return_value = "0f8b2c1e-6f1d-4f43-9a57-1c1b2f6f4a10"
    return tracker


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("76561198000000001", "76561198000000001"),
        ("39734273", "76561198000000001"),
        (" 39734273 ", "76561198000000001"),
        ("0", None),
        ("STEAM_0:1:1", None),
        ("", None),
    ],
)
def test_normalize_steam_id(raw, expected):
    assert normalize_steam_id(raw) == expected


async def test_register_returns_cfg_with_token(tracker):
    response = await handle_register_command(tracker, 11, "/register 76561198000000001", GSI_URI)

    tracker.register_user.assert_awaited_once_with(11, "76561198000000001")
    assert "0f8b2c1e-6f1d-4f43-9a57-1c1b2f6f4a10" in response
    assert GSI_URI in response
    assert "Registered Steam account 76561198000000001" in response


async def test_register_without_argument(tracker):
    response = await handle_register_command(tracker, 11, "/register", GSI_URI)

    assert response == "Usage: /register <steamid>"
    tracker.register_user.assert_not_awaited()


async def test_register_rejects_non_numeric_id(tracker):
    response = await handle_register_command(tracker, 11, "/register miracle", GSI_URI)

    assert "SteamID64" in response
    tracker.register_user.assert_not_awaited()


async def test_register_save_failure(tracker):
    tracker.register_user.side_effect = PersistenceError("disk full")

    response = await handle_register_command(tracker, 11, "/register 76561198000000001", GSI_URI)

    assert response == SAVE_FAILED_REPLY


async def test_bind(tracker):
    response = await handle_bind_command(tracker, -1001)

    tracker.bind_channel.assert_awaited_once_with(-1001)
    assert "/track" in response


async def test_track(tracker):
    response = await handle_track_command(tracker, 11, -1001)

    tracker.add_track.assert_awaited_once_with(11, -1001)
    assert response == "Your matches will be posted in this chat."


async def test_track_unbound_chat(tracker):
    tracker.add_track.side_effect = ChannelNotBoundError(-1001)

    response = await handle_track_command(tracker, 11, -1001)

    assert response == "This chat is not bound yet. Run /bind here first."


@pytest.mark.parametrize(
    "call",
    [
        lambda t: handle_bind_command(t, -1001),
        lambda t: handle_track_command(t, 11, -1001),
        lambda t: handle_untrack_command(t, 11, -1001),
    ],
)
async def test_save_failures_reported(tracker, call):
    tracker.bind_channel.side_effect = PersistenceError("disk full")
    tracker.add_track.side_effect = PersistenceError("disk full")
    tracker.remove_track.side_effect = PersistenceError("disk full")

    assert await call(tracker) == SAVE_FAILED_REPLY


async def test_untrack(tracker):
    response = await handle_untrack_command(tracker, 11, -1001)

    tracker.remove_track.assert_awaited_once_with(11, -1001)
    assert "no longer" in response
