"""Bounded conversation history window used as LLM context."""

from __future__ import annotations

from typing import Optional

from camille.ai.models import HistoryEntry
from camille.core.types import MessageRole
from camille.storage.conversation_repo import MessageRepository
from camille.storage.models import Message, now_ms

DEFAULT_HISTORY_LIMIT = 10

_CONTEXT_ROLES = (MessageRole.USER, MessageRole.ASSISTANT)


class HistoryService:
    def __init__(self, messages: MessageRepository):
        self._messages = messages

    async def get_recent(
        self, session_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[HistoryEntry]:
        """Return the last *limit* user/assistant turns, oldest first."""
        recent = await self._messages.find_recent_by_session(
            session_id, limit, roles=_CONTEXT_ROLES
        )
        return [HistoryEntry(role=str(m.role), content=m.content) for m in reversed(recent)]

    async def append(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        timestamp: Optional[int] = None,
    ) -> int:
        return await self._messages.insert(
            Message(
                session_id=session_id,
                role=role,
                content=content,
                created_at=timestamp if timestamp is not None else now_ms(),
            )
        )
