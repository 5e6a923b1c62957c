from __future__ import annotations

from camille.core.types import MessageRole


class TestHistoryService:
    async def test_recent_window_is_chronological_and_bounded(self, history):
        for i in range(15):
            role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
            await history.append("s1", role, f"m{i}", timestamp=1000 + i)

        recent = await history.get_recent("s1", limit=10)

        assert len(recent) == 10
        assert [e.content for e in recent] == [f"m{i}" for i in range(5, 15)]

    async def test_system_and_tool_roles_are_excluded(self, history):
        await history.append("s1", MessageRole.USER, "question", timestamp=1)
        await history.append("s1", MessageRole.SYSTEM, "internal", timestamp=2)
        await history.append("s1", MessageRole.TOOL, "raw output", timestamp=3)
        await history.append("s1", MessageRole.ASSISTANT, "answer", timestamp=4)

        recent = await history.get_recent("s1", limit=2)

        # The limit applies after filtering.
        assert [(e.role, e.content) for e in recent] == [
            ("user", "question"),
            ("assistant", "answer"),
        ]

    async def test_sessions_are_isolated(self, history):
        await history.append("s1", MessageRole.USER, "mine")
        await history.append("s2", MessageRole.USER, "theirs")

        assert [e.content for e in await history.get_recent("s1")] == ["mine"]

    async def test_equal_timestamps_keep_insertion_order(self, history):
        await history.append("s1", MessageRole.USER, "first", timestamp=5)
        await history.append("s1", MessageRole.ASSISTANT, "second", timestamp=5)

        assert [e.content for e in await history.get_recent("s1")] == ["first", "second"]
