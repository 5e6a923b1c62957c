from __future__ import annotations

from types import SimpleNamespace

import pytest

from camille.adapters.telegram import (
    FAILURE_TEXT,
    UNAUTHORIZED_TEXT,
    TelegramAdapter,
    split_message,
)
from camille.ai.models import OrchestratorResponse
from camille.core.crypto import hash_code
from camille.core.types import ClientType
from camille.storage.auth_repo import PairingCodeRepository, TelegramUserRepository
from camille.storage.models import TelegramUser, now_ms


class FakeMessage:
    def __init__(self, text: str = ""):
        self.text = text
        self.replies: list[str] = []
        self.actions: list[str] = []
        self.chat = SimpleNamespace(send_action=self._send_action)

    async def reply_text(self, text: str) -> None:
        self.replies.append(text)

    async def _send_action(self, action) -> None:
        self.actions.append(str(action))


def make_update(text: str = "", user_id: int = 42, username: str = "ada"):
    message = FakeMessage(text)
    update = SimpleNamespace(
        message=message,
        effective_user=SimpleNamespace(id=user_id, username=username),
    )
    return update, message


class FakeOrchestrator:
    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def process_message(self, text, session_id, on_status=None, on_chunk=None):
        self.calls.append((text, session_id))
        if self.error is not None:
            raise self.error
        return OrchestratorResponse(text=self.reply)


@pytest.fixture
def adapter_for(db, session_manager):
    def _make(orchestrator=None):
        return TelegramAdapter(
            orchestrator or FakeOrchestrator(),
            "123:token",
            session_manager,
            PairingCodeRepository(db),
            TelegramUserRepository(db),
        )

    return _make


def test_split_message():
    assert split_message("") == []
    assert split_message("abc", limit=2) == ["ab", "c"]
    assert [len(p) for p in split_message("x" * 9000)] == [4096, 4096, 808]


def test_token_required(session_manager, db):
    with pytest.raises(ValueError, match="token"):
        TelegramAdapter(
            FakeOrchestrator(),
            "",
            session_manager,
            PairingCodeRepository(db),
            TelegramUserRepository(db),
        )


class TestPairing:
    async def test_valid_code_pairs_user(self, adapter_for, db):
        await PairingCodeRepository(db).insert(hash_code("ABCD-EFGH"), now_ms() + 60_000)
        adapter = adapter_for()
        update, message = make_update()

        await adapter._on_pair(update, SimpleNamespace(args=["abcd-efgh"]))

        assert message.replies[0].startswith("Successfully paired!")
        assert await TelegramUserRepository(db).is_authorized(42)

    async def test_invalid_code(self, adapter_for, db):
        update, message = make_update()

        await adapter_for()._on_pair(update, SimpleNamespace(args=["WRONG-CODE"]))

        assert message.replies[0].startswith("Invalid or expired pairing code.")
        assert not await TelegramUserRepository(db).is_authorized(42)

    async def test_missing_code(self, adapter_for):
        update, message = make_update()

        await adapter_for()._on_pair(update, SimpleNamespace(args=[]))

        assert message.replies[0].startswith("Please provide a pairing code.")

    async def test_already_paired(self, adapter_for, db):
        await TelegramUserRepository(db).insert(TelegramUser(telegram_id=42))
        update, message = make_update()

        await adapter_for()._on_pair(update, SimpleNamespace(args=["ABCD-EFGH"]))

        assert message.replies == ["You are already paired! You can start chatting."]


class TestMessages:
    async def test_unpaired_user_is_refused(self, adapter_for):
        orchestrator = FakeOrchestrator("hi")
        update, message = make_update("hello")

        await adapter_for(orchestrator)._on_text(update, SimpleNamespace())

        assert message.replies == [UNAUTHORIZED_TEXT]
        assert orchestrator.calls == []

    async def test_paired_user_gets_split_reply(self, adapter_for, db, session_manager):
        await TelegramUserRepository(db).insert(TelegramUser(telegram_id=42))
        orchestrator = FakeOrchestrator("y" * 5000)
        update, message = make_update("write a lot")

        await adapter_for(orchestrator)._on_text(update, SimpleNamespace())

        assert [len(r) for r in message.replies] == [4096, 904]
        assert message.actions == ["typing"]
        session_id = await session_manager.get_session_id(ClientType.TELEGRAM, "42")
        assert orchestrator.calls == [("write a lot", session_id)]

    async def test_failure_sends_apology(self, adapter_for, db):
        await TelegramUserRepository(db).insert(TelegramUser(telegram_id=42))
        update, message = make_update("hello")

        await adapter_for(FakeOrchestrator(error=RuntimeError("boom")))._on_text(
            update, SimpleNamespace()
        )

        assert message.replies == [FAILURE_TEXT]

    async def test_reset_starts_new_session(self, adapter_for, db, session_manager):
        await TelegramUserRepository(db).insert(TelegramUser(telegram_id=42))
        before = await session_manager.get_session_id(ClientType.TELEGRAM, "42")
        update, message = make_update()

        await adapter_for()._on_reset(update, SimpleNamespace())

        assert message.replies == ["Session reset. Starting fresh."]
        assert await session_manager.get_session_id(ClientType.TELEGRAM, "42") != before
