"""Typed sections of a Game State Integration payload.

The game client posts the whole state on every tick. Each top-level section is
optional. When the client is spectating, ``player`` and ``hero`` are keyed by
team (``team2``/``team3``) instead of carrying fields directly; those sections
are parsed as absent since they do not describe the local player.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

GAME_STATE_PREFIX = "DOTA_GAMERULES_STATE_"


def _is_spectator_form(section: dict[str, Any]) -> bool:
    return any(key.startswith("team") and isinstance(value, dict) for key, value in section.items())


def _int(section: dict[str, Any], key: str) -> int:
    value = section.get(key)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            # inf, nan and non-numeric strings
            return 0
    return 0


def _str(section: dict[str, Any], key: str) -> str:
    value = section.get(key)
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class MapState:
    game_state: str
    customgamename: str
    matchid: str
    clock_time: int
    radiant_score: int
    dire_score: int

    @property
    def phase(self) -> str:
        """Game state without the ``DOTA_GAMERULES_STATE_`` prefix."""
        if self.game_state.startswith(GAME_STATE_PREFIX):
            return self.game_state[len(GAME_STATE_PREFIX):]
        return self.game_state

    @classmethod
    def from_json(cls, section: Any) -> MapState | None:
        if not isinstance(section, dict):
            return None
        return cls(
            game_state=_str(section, "game_state"),
            customgamename=_str(section, "customgamename"),
            matchid=_str(section, "matchid"),
            clock_time=_int(section, "clock_time"),
            radiant_score=_int(section, "radiant_score"),
            dire_score=_int(section, "dire_score"),
        )


@dataclass(frozen=True)
class PlayerState:
    steamid: str
    name: str
    team_name: str
    gold: int = 0
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    last_hits: int = 0
    denies: int = 0
    xpm: int = 0
    gpm: int = 0

    @classmethod
    def from_json(cls, section: Any) -> PlayerState | None:
        """Parse the local player's section; spectator form yields ``None``."""
        if not isinstance(section, dict) or _is_spectator_form(section):
            return None
        if "steamid" not in section:
            return None
        return cls(
            steamid=_str(section, "steamid"),
            name=_str(section, "name"),
            team_name=_str(section, "team_name"),
            gold=_int(section, "gold"),
            kills=_int(section, "kills"),
            deaths=_int(section, "deaths"),
            assists=_int(section, "assists"),
            last_hits=_int(section, "last_hits"),
            denies=_int(section, "denies"),
            xpm=_int(section, "xpm"),
            gpm=_int(section, "gpm"),
        )


@dataclass(frozen=True)
class HeroState:
    name: str
    level: int = 0
    health: int = 0
    max_health: int = 0
    mana: int = 0
    max_mana: int = 0

    @classmethod
    def from_json(cls, section: Any) -> HeroState | None:
        if not isinstance(section, dict) or _is_spectator_form(section):
            return None
        return cls(
            name=_str(section, "name"),
            level=_int(section, "level"),
            health=_int(section, "health"),
            max_health=_int(section, "max_health"),
            mana=_int(section, "mana"),
            max_mana=_int(section, "max_mana"),
        )


@dataclass(frozen=True)
class AuthState:
    token: str

    @classmethod
    def from_json(cls, section: Any) -> AuthState | None:
        if not isinstance(section, dict):
            return None
        token = section.get("token")
        if not isinstance(token, str):
            return None
        return cls(token=token)


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One decoded webhook payload."""

    map: MapState | None = None
    player: PlayerState | None = None
    hero: HeroState | None = None
    auth: AuthState | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_json(cls, payload: Any) -> TelemetrySnapshot:
        """Build a snapshot from a decoded JSON document.

        Raises:
            ValueError: If the document is not a JSON object
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
        return cls(
            map=MapState.from_json(payload.get("map")),
            player=PlayerState.from_json(payload.get("player")),
            hero=HeroState.from_json(payload.get("hero")),
            auth=AuthState.from_json(payload.get("auth")),
        )
