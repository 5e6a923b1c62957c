"""Whitelisted directories the agent may read from."""

from __future__ import annotations

import sqlite3

from camille.core.types import PathPermissions
from camille.storage.database import Database
from camille.storage.models import AllowedPath, now_ms


class DuplicatePathError(Exception):
    def __init__(self, path: str):
        super().__init__(f"Path already whitelisted: {path}")
        self.path = path


class AllowedPathRepository:
    def __init__(self, db: Database):
        self._db = db

    async def insert(self, path: str, permissions: PathPermissions = PathPermissions.READ) -> int:
        try:
            cursor = await self._db.conn.execute(
                """INSERT INTO allowed_paths (path, permissions, added_at, added_by)
                   VALUES (?, ?, ?, ?)""",
                (path, str(permissions), now_ms(), "cli"),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicatePathError(path) from e
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def find_all(self) -> list[AllowedPath]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM allowed_paths ORDER BY added_at ASC, id ASC"
        )
        rows = await cursor.fetchall()
        return [
            AllowedPath(
                id=row["id"],
                path=row["path"],
                permissions=PathPermissions(row["permissions"]),
                added_at=row["added_at"],
                added_by=row["added_by"],
            )
            for row in rows
        ]

    async def delete(self, path: str) -> bool:
        cursor = await self._db.conn.execute(
            "DELETE FROM allowed_paths WHERE path = ?", (path,)
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0
