"""Dota Stalker: relay live Dota 2 match telemetry to Telegram chats."""

__version__ = "0.1.0"
