"""
Telegram Bot Client.

Hosts the bot application, exposes the tracker's control operations as chat
commands, and provides the Bot instance the notifier posts with.
"""

import structlog
from telegram import Update
from telegram.constants import ChatType
from telegram.ext import Application, CommandHandler

from ..tracker.requests import TrackerClient
from .commands import (
    handle_bind_command,
    handle_register_command,
    handle_track_command,
    handle_untrack_command,
)

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    "📚 Dota Stalker Help\n\n"
    "/register <steamid> - (private chat) get a game client token\n"
    "/bind - allow match notifications in this chat\n"
    "/track - post your matches in this chat\n"
    "/untrack - stop posting your matches in this chat"
)


class TelegramClient:
    """Async Telegram Bot API integration for tracker commands."""

    def __init__(self, token: str, tracker: TrackerClient, gsi_uri: str):
        """
        Initialize TelegramClient.

        Args:
            token: Telegram bot token from @BotFather
            tracker: Control facade of the reconciliation actor
            gsi_uri: Webhook URI written into generated client configs
        """
        self.token = token
        self.tracker = tracker
        self.gsi_uri = gsi_uri
        self.application = None

    @property
    def bot(self):
        if self.application is None:
            raise RuntimeError("TelegramClient not started")
        return self.application.bot

    async def start(self):
        """Initialize and start the bot with polling."""
        logger.info("telegram_bot_starting")

        self.application = Application.builder().token(self.token).build()

        self.application.add_handler(CommandHandler("start", self.cmd_start))
        self.application.add_handler(CommandHandler("help", self.cmd_help))
        self.application.add_handler(CommandHandler("register", self.cmd_register))
        self.application.add_handler(CommandHandler("bind", self.cmd_bind))
        self.application.add_handler(CommandHandler("track", self.cmd_track))
        self.application.add_handler(CommandHandler("untrack", self.cmd_untrack))

        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling()

        logger.info("telegram_bot_started")

    async def stop(self):
        """Stop the bot gracefully."""
        if self.application:
            logger.info("telegram_bot_stopping")
            if self.application.updater:
                await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()
            logger.info("telegram_bot_stopped")

    async def _reply(self, update: Update, command: str, handler) -> None:
        try:
            response = await handler()
        except Exception as e:
            logger.error(
                "command_handling_error",
                command=command,
                chat_id=update.effective_chat.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await update.message.reply_text("❌ An error occurred processing your request.")
            return

        await update.message.reply_text(response)
        logger.info("command_handled", command=command, chat_id=update.effective_chat.id)

    @staticmethod
    def _is_complete(update: Update) -> bool:
        return bool(update.message and update.effective_chat and update.effective_user)

    async def cmd_start(self, update: Update, context):
        """Handle /start command."""
        if not self._is_complete(update):
            return

        await update.message.reply_text(
            "👋 Welcome to Dota Stalker!\n\n"
            "I post live updates of your Dota 2 matches to the chats you choose.\n\n"
            + HELP_TEXT
        )

    async def cmd_help(self, update: Update, context):
        """Handle /help command."""
        if not self._is_complete(update):
            return

        await update.message.reply_text(HELP_TEXT)

    async def cmd_register(self, update: Update, context):
        """Handle /register <steamid>; only in private chats since the reply holds a secret."""
        if not self._is_complete(update):
            return

        if update.effective_chat.type != ChatType.PRIVATE:
            await update.message.reply_text("Send /register to me in a private chat.")
            return

        await self._reply(
            update,
            "register",
            lambda: handle_register_command(
                self.tracker,
                update.effective_user.id,
                update.message.text or "",
                self.gsi_uri,
            ),
        )

    async def cmd_bind(self, update: Update, context):
        """Handle /bind command."""
        if not self._is_complete(update):
            return

        await self._reply(
            update,
            "bind",
            lambda: handle_bind_command(self.tracker, update.effective_chat.id),
        )

    async def cmd_track(self, update: Update, context):
        """Handle /track command."""
        if not self._is_complete(update):
            return

        await self._reply(
            update,
            "track",
            lambda: handle_track_command(self.tracker, update.effective_user.id, update.effective_chat.id),
        )

    async def cmd_untrack(self, update: Update, context):
        """Handle /untrack command."""
        if not self._is_complete(update):
            return

        await self._reply(
            update,
            "untrack",
            lambda: handle_untrack_command(self.tracker, update.effective_user.id, update.effective_chat.id),
        )
