"""Session and message repositories backing conversation history."""

from __future__ import annotations

from typing import Iterable, Optional

from camille.core.types import ClientType, MessageRole
from camille.log import get_logger
from camille.storage.database import Database
from camille.storage.models import Message, Session, now_ms

logger = get_logger(__name__)


class SessionRepository:
    """CRUD over conversation sessions."""

    def __init__(self, db: Database):
        self._db = db

    async def insert(self, session: Session) -> None:
        await self._db.conn.execute(
            """INSERT INTO sessions (id, client_type, client_id, created_at, last_active_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                session.id,
                str(session.client_type),
                session.client_id,
                session.created_at,
                session.last_active_at,
            ),
        )
        await self._db.conn.commit()

    async def find_by_id(self, session_id: str) -> Optional[Session]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Session(
            id=row["id"],
            client_type=ClientType(row["client_type"]),
            client_id=row["client_id"],
            created_at=row["created_at"],
            last_active_at=row["last_active_at"],
        )

    async def update_last_active(self, session_id: str, at: int | None = None) -> None:
        await self._db.conn.execute(
            "UPDATE sessions SET last_active_at = ? WHERE id = ?",
            (at if at is not None else now_ms(), session_id),
        )
        await self._db.conn.commit()

    async def ensure(
        self, session_id: str, client_type: ClientType, client_id: str | None = None
    ) -> Session:
        """Insert the session on first contact, otherwise bump its last-active time."""
        existing = await self.find_by_id(session_id)
        if existing is None:
            session = Session(id=session_id, client_type=client_type, client_id=client_id)
            await self.insert(session)
            logger.debug("session_inserted", session_id=session_id, client_type=str(client_type))
            return session

        await self.update_last_active(session_id)
        return existing


class MessageRepository:
    """Append-only store of conversation messages."""

    def __init__(self, db: Database):
        self._db = db

    async def insert(self, message: Message) -> int:
        """Save a message, touch its session, and return the message ID."""
        cursor = await self._db.conn.execute(
            """INSERT INTO messages (session_id, role, content, created_at)
               VALUES (?, ?, ?, ?)""",
            (message.session_id, str(message.role), message.content, message.created_at),
        )
        await self._db.conn.execute(
            "UPDATE sessions SET last_active_at = ? WHERE id = ?",
            (now_ms(), message.session_id),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def find_by_session(self, session_id: str) -> list[Message]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM messages WHERE session_id = ? ORDER BY created_at ASC, id ASC",
            (session_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def find_recent_by_session(
        self,
        session_id: str,
        limit: int,
        roles: Iterable[MessageRole] | None = None,
    ) -> list[Message]:
        """Return up to *limit* most recent messages, newest first."""
        params: list[object] = [session_id]
        role_clause = ""
        if roles is not None:
            role_list = [str(r) for r in roles]
            role_clause = f" AND role IN ({', '.join('?' for _ in role_list)})"
            params.extend(role_list)
        params.append(limit)

        cursor = await self._db.conn.execute(
            f"""SELECT * FROM messages
                WHERE session_id = ?{role_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT ?""",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    async def delete_by_session(self, session_id: str) -> int:
        cursor = await self._db.conn.execute(
            "DELETE FROM messages WHERE session_id = ?", (session_id,)
        )
        await self._db.conn.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            role=MessageRole(row["role"]),
            content=row["content"],
            created_at=row["created_at"],
        )
