"""Durable aggregate held by the tracker and written by the save store."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ClientIdentity:
    """Shared-secret token plus the Steam account id the client reports."""

    token: str
    steam_id: str


@dataclass
class SaveData:
    """Channel bindings, registrations and per-user tracks.

    Attributes:
        channels: Chat ids approved as notification destinations
        registrations: Client identity -> Telegram user id
        tracks: Telegram user id -> bound chat ids receiving that user's matches
    """

    channels: set[int] = field(default_factory=set)
    registrations: dict[ClientIdentity, int] = field(default_factory=dict)
    tracks: dict[int, set[int]] = field(default_factory=dict)

    def copy(self) -> SaveData:
        return SaveData(
            channels=set(self.channels),
            registrations=dict(self.registrations),
            tracks={user_id: set(channels) for user_id, channels in self.tracks.items()},
        )
