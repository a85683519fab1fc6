"""
Game State Integration module.

Receives telemetry pushed by the Dota 2 client and turns it into typed
snapshots for the tracker.
"""

from .listener import TelemetryListener, decode_snapshot
from .models import AuthState, HeroState, MapState, PlayerState, TelemetrySnapshot

__all__ = [
    "AuthState",
    "HeroState",
    "MapState",
    "PlayerState",
    "TelemetryListener",
    "TelemetrySnapshot",
    "decode_snapshot",
]
