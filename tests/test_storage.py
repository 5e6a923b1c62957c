from __future__ import annotations

import pytest

from camille.core.crypto import generate_pairing_code, hash_code
from camille.core.types import ClientType, MessageRole, PathPermissions
from camille.storage.allowed_path_repo import AllowedPathRepository, DuplicatePathError
from camille.storage.auth_repo import PairingCodeRepository, TelegramUserRepository
from camille.storage.models import Message, TelegramUser, ToolCallRecord, now_ms


class TestSessionRepository:
    async def test_ensure_inserts_then_touches(self, session_repo):
        created = await session_repo.ensure("s1", ClientType.IPC)
        assert created.client_type == ClientType.IPC

        await session_repo.update_last_active("s1", at=created.last_active_at + 5000)
        found = await session_repo.find_by_id("s1")
        assert found is not None
        assert found.last_active_at == created.last_active_at + 5000

        again = await session_repo.ensure("s1", ClientType.IPC)
        assert again.created_at == created.created_at

    async def test_find_missing_returns_none(self, session_repo):
        assert await session_repo.find_by_id("nope") is None


class TestMessageRepository:
    async def test_insert_touches_session(self, session_repo, message_repo):
        await session_repo.ensure("s1", ClientType.CLI)
        await session_repo.update_last_active("s1", at=1)

        await message_repo.insert(Message(session_id="s1", role=MessageRole.USER, content="hi"))

        session = await session_repo.find_by_id("s1")
        assert session.last_active_at > 1

    async def test_recent_is_newest_first_with_id_tiebreak(self, message_repo):
        for i in range(3):
            await message_repo.insert(
                Message(session_id="s1", role=MessageRole.USER, content=f"m{i}", created_at=100)
            )
        recent = await message_repo.find_recent_by_session("s1", limit=2)
        assert [m.content for m in recent] == ["m2", "m1"]

    async def test_delete_by_session(self, message_repo):
        await message_repo.insert(Message(session_id="s1", role=MessageRole.USER, content="a"))
        await message_repo.insert(Message(session_id="s2", role=MessageRole.USER, content="b"))

        assert await message_repo.delete_by_session("s1") == 1
        assert await message_repo.find_by_session("s1") == []
        assert len(await message_repo.find_by_session("s2")) == 1


class TestToolCallRepository:
    async def test_round_trip(self, tool_call_repo):
        await tool_call_repo.insert(
            ToolCallRecord(session_id="s1", tool_name="search", input="{}", error="boom")
        )
        rows = await tool_call_repo.find_by_session("s1")
        assert len(rows) == 1
        assert rows[0].error == "boom"
        assert rows[0].output is None
        assert rows[0].duration_ms is None


class TestPairingCodes:
    async def test_valid_code_is_consumed_once(self, db):
        repo = PairingCodeRepository(db)
        code = generate_pairing_code()
        await repo.insert(hash_code(code), now_ms() + 60_000)

        assert await repo.validate_and_consume(hash_code(code)) is True
        assert await repo.validate_and_consume(hash_code(code)) is False

    async def test_expired_code_never_validates(self, db):
        repo = PairingCodeRepository(db)
        expired = hash_code("ABCD-EFGH")
        await db.conn.execute(
            "INSERT INTO pairing_codes (code_hash, expires_at) VALUES (?, ?)",
            (expired, now_ms() - 1000),
        )
        await db.conn.commit()

        assert await repo.validate_and_consume(expired) is False
        cursor = await db.conn.execute(
            "SELECT COUNT(*) FROM pairing_codes WHERE code_hash = ?", (expired,)
        )
        assert (await cursor.fetchone())[0] == 0

    async def test_hash_ignores_dashes_and_case(self):
        assert hash_code("abcd-efgh") == hash_code("ABCDEFGH")


class TestTelegramUsers:
    async def test_authorization_follows_pairing(self, db):
        repo = TelegramUserRepository(db)
        assert await repo.is_authorized(42) is False

        await repo.insert(TelegramUser(telegram_id=42, username="ada"))
        assert await repo.is_authorized(42) is True

        assert await repo.delete(42) is True
        assert await repo.is_authorized(42) is False


class TestAllowedPaths:
    async def test_duplicate_insert_raises(self, db):
        repo = AllowedPathRepository(db)
        await repo.insert("/data/docs")

        with pytest.raises(DuplicatePathError):
            await repo.insert("/data/docs")

    async def test_find_all_and_delete(self, db):
        repo = AllowedPathRepository(db)
        await repo.insert("/a")
        await repo.insert("/b", PathPermissions.READ_WRITE)

        rows = await repo.find_all()
        assert [(r.path, r.permissions) for r in rows] == [
            ("/a", PathPermissions.READ),
            ("/b", PathPermissions.READ_WRITE),
        ]
        assert await repo.delete("/a") is True
        assert await repo.delete("/a") is False
