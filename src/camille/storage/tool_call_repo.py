"""Audit log of tool invocations."""

from __future__ import annotations

from camille.storage.database import Database
from camille.storage.models import ToolCallRecord


class ToolCallRepository:
    def __init__(self, db: Database):
        self._db = db

    async def insert(self, record: ToolCallRecord) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO tool_calls
               (session_id, tool_name, input, output, error, duration_ms, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.session_id,
                record.tool_name,
                record.input,
                record.output,
                record.error,
                record.duration_ms,
                record.created_at,
            ),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def find_by_session(self, session_id: str) -> list[ToolCallRecord]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM tool_calls WHERE session_id = ? ORDER BY created_at ASC, id ASC",
            (session_id,),
        )
        rows = await cursor.fetchall()
        return [
            ToolCallRecord(
                id=row["id"],
                session_id=row["session_id"],
                tool_name=row["tool_name"],
                input=row["input"],
                output=row["output"],
                error=row["error"],
                duration_ms=row["duration_ms"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
