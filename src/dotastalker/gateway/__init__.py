"""
Telegram Gateway module.

Handles chat commands from Telegram users and delivers match notifications
to bound chats.
"""

from .formatters import format_gsi_config, render_notification
from .notifier import TelegramNotifier
from .telegram_client import TelegramClient

__all__ = ["TelegramClient", "TelegramNotifier", "format_gsi_config", "render_notification"]
