"""Telegram pairing: one-time pairing codes and the paired-user allowlist."""

from __future__ import annotations

from typing import Optional

from camille.storage.database import Database
from camille.storage.models import TelegramUser, now_ms


class PairingCodeRepository:
    """Short-lived pairing codes, stored only as hashes."""

    def __init__(self, db: Database):
        self._db = db

    async def insert(self, code_hash: str, expires_at: int) -> None:
        await self._db.conn.execute(
            "DELETE FROM pairing_codes WHERE expires_at < ?", (now_ms(),)
        )
        await self._db.conn.execute(
            "INSERT INTO pairing_codes (code_hash, expires_at) VALUES (?, ?)",
            (code_hash, expires_at),
        )
        await self._db.conn.commit()

    async def validate_and_consume(self, code_hash: str) -> bool:
        """Return True exactly once for an unexpired code, deleting it.

        Three separate statements, not a transaction: concurrent attempts
        with the same code may race.
        """
        conn = self._db.conn
        await conn.execute("DELETE FROM pairing_codes WHERE expires_at < ?", (now_ms(),))
        await conn.commit()

        cursor = await conn.execute(
            "SELECT code_hash FROM pairing_codes WHERE code_hash = ?", (code_hash,)
        )
        row = await cursor.fetchone()
        if row is None:
            return False

        await conn.execute("DELETE FROM pairing_codes WHERE code_hash = ?", (code_hash,))
        await conn.commit()
        return True

    async def delete_expired(self) -> int:
        cursor = await self._db.conn.execute(
            "DELETE FROM pairing_codes WHERE expires_at < ?", (now_ms(),)
        )
        await self._db.conn.commit()
        return cursor.rowcount


class TelegramUserRepository:
    def __init__(self, db: Database):
        self._db = db

    async def insert(self, user: TelegramUser) -> int:
        cursor = await self._db.conn.execute(
            "INSERT INTO telegram_users (telegram_id, username, paired_at) VALUES (?, ?, ?)",
            (user.telegram_id, user.username, user.paired_at),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def find_by_telegram_id(self, telegram_id: int) -> Optional[TelegramUser]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM telegram_users WHERE telegram_id = ?", (telegram_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return TelegramUser(
            id=row["id"],
            telegram_id=row["telegram_id"],
            username=row["username"],
            paired_at=row["paired_at"],
        )

    async def is_authorized(self, telegram_id: int) -> bool:
        return await self.find_by_telegram_id(telegram_id) is not None

    async def delete(self, telegram_id: int) -> bool:
        cursor = await self._db.conn.execute(
            "DELETE FROM telegram_users WHERE telegram_id = ?", (telegram_id,)
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0
