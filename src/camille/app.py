"""Composition root: wires storage, tools, agents and adapters, manages lifecycle."""

from __future__ import annotations

from camille import paths
from camille.adapters.base import Adapter
from camille.adapters.ipc import IPCAdapter
from camille.ai.client import check_credentials
from camille.ai.history import HistoryService
from camille.ai.orchestrator import Orchestrator
from camille.ai.tools.registry import ToolRegistry, register_builtin_tools
from camille.config import AppConfig
from camille.core.cache import ExpiringCache
from camille.core.permissions import PathGuard
from camille.core.session import SessionManager
from camille.log import get_logger
from camille.storage.allowed_path_repo import AllowedPathRepository
from camille.storage.auth_repo import PairingCodeRepository, TelegramUserRepository
from camille.storage.conversation_repo import MessageRepository, SessionRepository
from camille.storage.database import Database
from camille.storage.tool_call_repo import ToolCallRepository

logger = get_logger(__name__)


class CamilleApp:
    """Top-level daemon object.

    Construction is cheap; ``start`` opens the database, checks the LLM
    credentials and brings up the adapters.
    """

    def __init__(self, config: AppConfig, db_path: str | None = None):
        self.config = config
        self.db = Database(db_path or paths.db())
        self.session_repo = SessionRepository(self.db)
        self.message_repo = MessageRepository(self.db)
        self.tool_call_repo = ToolCallRepository(self.db)
        self.pairing_codes = PairingCodeRepository(self.db)
        self.telegram_users = TelegramUserRepository(self.db)
        self.allowed_paths = AllowedPathRepository(self.db)

        self.session_manager = SessionManager(self.session_repo)
        self.path_guard = PathGuard(paths.data(), self.allowed_paths)
        self.calendar_cache: ExpiringCache[list[str]] = ExpiringCache()
        self.reminder_lists_cache: ExpiringCache[list[str]] = ExpiringCache()
        self.tool_registry = ToolRegistry()
        self.orchestrator: Orchestrator | None = None
        self.adapters: list[Adapter] = []

    async def start(self) -> None:
        """Initialize and start all components."""
        # Fatal: no request could succeed without credentials.
        check_credentials(self.config.llm)

        await self.db.initialize()

        register_builtin_tools(
            self.tool_registry,
            self.path_guard,
            self.calendar_cache,
            self.reminder_lists_cache,
        )

        self.orchestrator = Orchestrator(
            self.config,
            self.tool_registry,
            HistoryService(self.message_repo),
            self.tool_call_repo,
            self.session_manager,
        )

        # Adapters start only after the registry is fully populated.
        ipc = IPCAdapter(self.orchestrator)
        await ipc.start()
        self.adapters.append(ipc)

        if self.config.telegram:
            from camille.adapters.telegram import TelegramAdapter

            telegram = TelegramAdapter(
                self.orchestrator,
                self.config.telegram.bot_token,
                self.session_manager,
                self.pairing_codes,
                self.telegram_users,
            )
            try:
                await telegram.start()
                self.adapters.append(telegram)
            except Exception as e:
                logger.error("adapter_start_failed", adapter=telegram.name, error=str(e))

        logger.info(
            "camille_started",
            provider=self.config.llm.provider,
            model=self.config.llm.model,
            tools=len(self.tool_registry),
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        for adapter in reversed(self.adapters):
            try:
                await adapter.stop()
            except Exception as e:
                logger.error("adapter_stop_error", adapter=adapter.name, error=str(e))
        self.adapters.clear()

        await self.db.close()
        logger.info("camille_stopped")
