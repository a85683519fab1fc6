"""Gateway command handlers."""

from __future__ import annotations

from ..exceptions import ChannelNotBoundError, PersistenceError
from ..tracker.requests import TrackerClient
from .formatters import format_gsi_config

# SteamID64 of account id 0 in the public universe.
STEAMID64_BASE = 76561197960265728

SAVE_FAILED_REPLY = "❌ Could not save that change, please try again later."


def normalize_steam_id(raw: str) -> str | None:
    """Accept a SteamID64 or a 32-bit account id and return the SteamID64."""
    raw = raw.strip()
    if not raw.isdigit():
        return None
    value = int(raw)
    if value == 0:
        return None
    if value < STEAMID64_BASE:
        value += STEAMID64_BASE
    return str(value)


async def handle_register_command(
    tracker: TrackerClient,
    user_id: int,
    command_text: str,
    gsi_uri: str,
) -> str:
    """Handle /register <steamid>."""
    parts = command_text.strip().split()
    if len(parts) < 2:
        return "Usage: /register <steamid>"

    steam_id = normalize_steam_id(parts[1])
    if steam_id is None:
        return "Steam ID must be a SteamID64 or a numeric account id."

    try:
        token = await tracker.register_user(user_id, steam_id)
    except PersistenceError:
        return SAVE_FAILED_REPLY

    return (
        f"Registered Steam account {steam_id}.\n\n"
        "Save the following as gamestate_integration_stalker.cfg in your "
        "dota 2 beta/game/dota/cfg/gamestate_integration folder, then restart the game. "
        "Keep the token secret.\n\n"
        f"{format_gsi_config(token, gsi_uri)}"
    )


async def handle_bind_command(tracker: TrackerClient, chat_id: int) -> str:
    """Handle /bind in the chat that should receive notifications."""
    try:
        await tracker.bind_channel(chat_id)
    except PersistenceError:
        return SAVE_FAILED_REPLY
    return "This chat can now receive match notifications. Players opt in with /track."


async def handle_track_command(tracker: TrackerClient, user_id: int, chat_id: int) -> str:
    """Handle /track in a bound chat."""
    try:
        await tracker.add_track(user_id, chat_id)
    except ChannelNotBoundError:
        return "This chat is not bound yet. Run /bind here first."
    except PersistenceError:
        return SAVE_FAILED_REPLY
    return "Your matches will be posted in this chat."


async def handle_untrack_command(tracker: TrackerClient, user_id: int, chat_id: int) -> str:
    """Handle /untrack."""
    try:
        await tracker.remove_track(user_id, chat_id)
    except PersistenceError:
        return SAVE_FAILED_REPLY
    return "Your matches will no longer be posted in this chat."
