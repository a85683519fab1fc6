"""Derive notification content from a telemetry snapshot."""

from __future__ import annotations

from ..gsi.models import TelemetrySnapshot
from .sink import ContentField, NotificationContent

HERO_NAME_PREFIX = "npc_dota_hero_"


def format_clock(seconds: int) -> str:
    """Format the game clock; pre-horn time is negative."""
    sign = "-" if seconds < 0 else ""
    minutes, secs = divmod(abs(seconds), 60)
    return f"{sign}{minutes}:{secs:02d}"


def hero_display_name(name: str) -> str:
    """``npc_dota_hero_shadow_fiend`` -> ``Shadow Fiend``."""
    if name.startswith(HERO_NAME_PREFIX):
        name = name[len(HERO_NAME_PREFIX):]
    if not name:
        return "Unknown"
    return " ".join(part.capitalize() for part in name.split("_"))


def _team_display_name(team_name: str) -> str:
    if not team_name:
        return "an unknown team"
    return team_name[0].upper() + team_name[1:]


def build_content(snapshot: TelemetrySnapshot) -> NotificationContent:
    """Build the match-progress notification for a qualifying snapshot.

    Raises:
        ValueError: If the map, player or hero section is missing
    """
    game_map, player, hero = snapshot.map, snapshot.player, snapshot.hero
    if game_map is None or player is None or hero is None:
        raise ValueError("Snapshot lacks the map, player or hero section")

    fields = (
        ContentField("Time", format_clock(game_map.clock_time)),
        ContentField("Radiant / Dire", f"{game_map.radiant_score}/{game_map.dire_score}"),
        ContentField("Hero", hero_display_name(hero.name), inline=False),
        ContentField("Level", str(hero.level)),
        ContentField("Gold", str(player.gold)),
        ContentField("Health", f"{hero.health}/{hero.max_health}"),
        ContentField("Mana", f"{hero.mana}/{hero.max_mana}"),
        ContentField("K/D/A", f"{player.kills}/{player.deaths}/{player.assists}"),
        ContentField("CS/DN", f"{player.last_hits}/{player.denies}"),
        ContentField("XPM/GPM", f"{player.xpm}/{player.gpm}"),
    )

    return NotificationContent(
        title=f"{player.name or 'Someone'} is playing a match on {_team_display_name(player.team_name)}!",
        fields=fields,
        footer=f"Match ID: {game_map.matchid}",
        timestamp=snapshot.received_at,
    )
