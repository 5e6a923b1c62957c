from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import pytest

from camille.ai.client import AIClient
from camille.ai.history import HistoryService
from camille.ai.tools.process import CommandResult
from camille.core.session import SessionManager
from camille.storage.conversation_repo import MessageRepository, SessionRepository
from camille.storage.database import Database
from camille.storage.tool_call_repo import ToolCallRepository


@pytest.fixture(autouse=True)
def camille_home(tmp_path, monkeypatch):
    home = tmp_path / "camille-home"
    monkeypatch.setenv("CAMILLE_HOME", str(home))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    return home


@pytest.fixture
async def db(tmp_path):
    database = Database(tmp_path / "test.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def session_repo(db):
    return SessionRepository(db)


@pytest.fixture
def message_repo(db):
    return MessageRepository(db)


@pytest.fixture
def tool_call_repo(db):
    return ToolCallRepository(db)


@pytest.fixture
def history(message_repo):
    return HistoryService(message_repo)


@pytest.fixture
def session_manager(session_repo):
    return SessionManager(session_repo)


class FakeAIClient(AIClient):
    """Scripted client: returns queued objects and streams queued chunk lists.

    An exception queued in either list is raised in its place; inside a chunk
    list it is raised after the chunks before it have been yielded.
    """

    def __init__(self, objects: Optional[list[Any]] = None, streams: Optional[list[list[Any]]] = None):
        self.model = "fake"
        self.objects = list(objects or [])
        self.streams = list(streams or [])
        self.object_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []

    async def generate_object(self, system, messages, schema, temperature):
        self.object_calls.append(
            {"system": system, "messages": messages, "schema": schema, "temperature": temperature}
        )
        value = self.objects.pop(0)
        if isinstance(value, Exception):
            raise value
        return schema.model_validate(value) if isinstance(value, dict) else value

    async def stream_text(self, system, messages, temperature) -> AsyncIterator[str]:
        self.stream_calls.append({"system": system, "messages": messages, "temperature": temperature})
        chunks = self.streams.pop(0) if self.streams else []
        if isinstance(chunks, Exception):
            raise chunks
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class FakeRunner:
    """Stands in for ``run_osascript``; records calls and replays results."""

    def __init__(self, *results: CommandResult):
        self.results = list(results)
        self.calls: list[tuple[list[str], list[str]]] = []

    async def __call__(self, lines, argv=()):
        self.calls.append((list(lines), list(argv)))
        return self.results.pop(0)


def osascript_result(stdout: str = "", exit_code: int = 0, stderr: str = "", **kwargs) -> CommandResult:
    return CommandResult(
        command="/usr/bin/osascript",
        args=[],
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        **kwargs,
    )
