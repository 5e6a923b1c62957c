"""Tool registry for discovering and managing available tools."""

from __future__ import annotations

from typing import Any, Iterator

from camille.ai.tools.base import Tool
from camille.core.cache import ExpiringCache
from camille.core.permissions import PathGuard
from camille.log import get_logger

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of all available tools, keyed by name.

    Populated once at startup; a later registration under the same name
    replaces the earlier one.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def keys(self) -> list[str]:
        return list(self._tools)

    def values(self) -> list[Tool]:
        return list(self._tools.values())

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self._tools)

    def describe_all(self) -> list[dict[str, Any]]:
        return [tool.describe() for tool in self._tools.values()]


def register_builtin_tools(
    registry: ToolRegistry,
    guard: PathGuard,
    calendar_cache: ExpiringCache[list[str]],
    reminder_lists_cache: ExpiringCache[list[str]],
) -> None:
    """Import and register all built-in tools."""
    from camille.ai.tools.calendar import (
        AppleCalendar,
        CalendarListByDayTool,
        CalendarListsTool,
        CalendarWeekTool,
    )
    from camille.ai.tools.command import CommandTool
    from camille.ai.tools.filesystem import ReadFileTool, SearchTool
    from camille.ai.tools.reminders import (
        AppleReminders,
        RemindersCreateTool,
        RemindersListsTool,
        RemindersListTool,
        RemindersSearchTool,
    )

    calendar = AppleCalendar(calendar_cache)
    reminders = AppleReminders(reminder_lists_cache)

    registry.register(SearchTool(guard))
    registry.register(ReadFileTool(guard))
    registry.register(CommandTool())
    registry.register(CalendarListsTool(calendar))
    registry.register(CalendarListByDayTool(calendar))
    registry.register(CalendarWeekTool(calendar))
    registry.register(RemindersListsTool(reminders))
    registry.register(RemindersListTool(reminders))
    registry.register(RemindersSearchTool(reminders))
    registry.register(RemindersCreateTool(reminders))

    logger.info("builtin_tools_registered", tools=registry.keys())
