"""Session manager: creates persisted sessions and maps chat users to them."""

from __future__ import annotations

from camille.core.crypto import generate_session_id
from camille.core.types import ClientType
from camille.log import get_logger
from camille.storage.conversation_repo import SessionRepository

logger = get_logger(__name__)


class SessionManager:
    """Creates sessions and remembers the active session per chat user.

    The user -> session mapping lives in memory only; a daemon restart
    starts fresh conversations.
    """

    def __init__(self, session_repo: SessionRepository):
        self._repo = session_repo
        self._active_sessions: dict[tuple[ClientType, str], str] = {}

    async def create(self, client_type: ClientType, client_id: str | None = None) -> str:
        session_id = generate_session_id()
        await self._repo.ensure(session_id, client_type, client_id)
        logger.info(
            "session_created",
            session_id=session_id,
            client_type=str(client_type),
            client_id=client_id,
        )
        return session_id

    async def ensure(
        self, session_id: str, client_type: ClientType, client_id: str | None = None
    ) -> None:
        await self._repo.ensure(session_id, client_type, client_id)

    async def get_session_id(self, client_type: ClientType, client_id: str) -> str:
        """Get or create the active session for a chat user."""
        key = (client_type, client_id)
        if key not in self._active_sessions:
            self._active_sessions[key] = await self.create(client_type, client_id)
        return self._active_sessions[key]

    async def reset(self, client_type: ClientType, client_id: str) -> str:
        """Force a new session for a chat user, returning the new ID."""
        session_id = await self.create(client_type, client_id)
        self._active_sessions[(client_type, client_id)] = session_id
        logger.info("session_reset", client_type=str(client_type), client_id=client_id)
        return session_id
