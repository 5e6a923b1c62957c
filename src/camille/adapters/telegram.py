"""Telegram bot adapter using python-telegram-bot v21+."""

from __future__ import annotations

from typing import Any

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from camille.adapters.base import Adapter
from camille.ai.orchestrator import Orchestrator
from camille.core.crypto import hash_code
from camille.core.session import SessionManager
from camille.core.types import ClientType
from camille.log import get_logger
from camille.storage.auth_repo import PairingCodeRepository, TelegramUserRepository
from camille.storage.models import TelegramUser

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 4096

WELCOME_TEXT = (
    "Welcome to Camille!\n\n"
    "To use this bot, you need to pair it with your CLI:\n\n"
    "1. Run `camille pair` in your terminal\n"
    "2. Send `/pair YOUR_CODE` here\n\n"
    "After pairing, you can chat with me!"
)
UNAUTHORIZED_TEXT = (
    "You are not authorized to use this bot.\n\n"
    "Please pair your account:\n"
    "1. Run `camille pair` in your terminal\n"
    "2. Send `/pair YOUR_CODE` here"
)
FAILURE_TEXT = "Sorry, something went wrong. Please try again."


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    if not text:
        return []
    return [text[i : i + limit] for i in range(0, len(text), limit)]


class TelegramAdapter(Adapter):
    """Chat front-end restricted to users paired through ``camille pair``."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        token: str,
        sessions: SessionManager,
        pairing_codes: PairingCodeRepository,
        users: TelegramUserRepository,
    ):
        super().__init__(orchestrator)
        if not token:
            raise ValueError("Telegram bot token not configured")
        self._token = token
        self._sessions = sessions
        self._pairing_codes = pairing_codes
        self._users = users
        self._app: Application | None = None  # type: ignore[type-arg]

    @property
    def name(self) -> str:
        return "telegram"

    async def start(self) -> None:
        self._app = Application.builder().token(self._token).build()

        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(CommandHandler("pair", self._on_pair))
        self._app.add_handler(CommandHandler("status", self._on_status))
        self._app.add_handler(CommandHandler("reset", self._on_reset))
        self._app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._on_text))

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)  # type: ignore[union-attr]
        logger.info("telegram_adapter_started", username=self._app.bot.username)

    async def stop(self) -> None:
        if self._app:
            await self._app.updater.stop()  # type: ignore[union-attr]
            await self._app.stop()
            await self._app.shutdown()
            self._app = None
            logger.info("telegram_adapter_stopped")

    async def _is_authorized(self, update: Update) -> bool:
        user = update.effective_user
        return user is not None and await self._users.is_authorized(user.id)

    async def _on_start(self, update: Update, context: Any) -> None:
        if update.message:
            await update.message.reply_text(WELCOME_TEXT)

    async def _on_pair(self, update: Update, context: Any) -> None:
        message = update.message
        user = update.effective_user
        if message is None:
            return
        if user is None:
            await message.reply_text("Could not identify your Telegram account.")
            return

        if await self._users.is_authorized(user.id):
            await message.reply_text("You are already paired! You can start chatting.")
            return

        code = " ".join(context.args or []).strip().upper()
        if not code:
            await message.reply_text(
                "Please provide a pairing code.\n\n"
                "Usage: `/pair YOUR_CODE`\n"
                "Get a code by running `camille pair` in your terminal."
            )
            return

        if not await self._pairing_codes.validate_and_consume(hash_code(code)):
            await message.reply_text(
                "Invalid or expired pairing code.\n\n"
                "Please generate a new code with `camille pair` and try again."
            )
            return

        try:
            await self._users.insert(TelegramUser(telegram_id=user.id, username=user.username))
        except Exception as e:
            logger.error("telegram_pairing_failed", telegram_id=user.id, error=str(e))
            await message.reply_text("Failed to complete pairing. Please try again.")
            return

        logger.info("telegram_user_paired", telegram_id=user.id, username=user.username)
        await message.reply_text(
            "Successfully paired!\n\nYou can now chat with me. Just send a message!"
        )

    async def _on_status(self, update: Update, context: Any) -> None:
        if update.message is None:
            return
        if not await self._is_authorized(update):
            await update.message.reply_text("You are not authorized. Please use /pair first.")
            return
        await update.message.reply_text(
            "Camille is running!\n\nSend me a message and I'll respond."
        )

    async def _on_reset(self, update: Update, context: Any) -> None:
        if update.message is None or update.effective_user is None:
            return
        if not await self._is_authorized(update):
            await update.message.reply_text("You are not authorized. Please use /pair first.")
            return
        await self._sessions.reset(ClientType.TELEGRAM, str(update.effective_user.id))
        await update.message.reply_text("Session reset. Starting fresh.")

    async def _on_text(self, update: Update, context: Any) -> None:
        message = update.message
        if message is None or not message.text:
            return
        if not await self._is_authorized(update):
            await message.reply_text(UNAUTHORIZED_TEXT)
            return

        telegram_id = str(update.effective_user.id)  # type: ignore[union-attr]
        session_id = await self._sessions.get_session_id(ClientType.TELEGRAM, telegram_id)
        logger.debug("telegram_message_received", telegram_id=telegram_id, text=message.text[:100])

        try:
            await message.chat.send_action(ChatAction.TYPING)
            response = await self.orchestrator.process_message(message.text, session_id)
            for part in split_message(response.text):
                await message.reply_text(part)
        except Exception as e:
            logger.error("telegram_handler_error", telegram_id=telegram_id, error=str(e))
            await message.reply_text(FAILURE_TEXT)
