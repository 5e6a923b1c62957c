"""Apple Reminders tools, driven through AppleScript."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from camille.ai.tools.base import Tool, ToolContext
from camille.ai.tools.process import (
    FIELD_SEPARATOR,
    RECORD_SEPARATOR,
    OsascriptRunner,
    ensure_success,
    run_osascript,
)
from camille.core.cache import ExpiringCache
from camille.log import get_logger

logger = get_logger(__name__)

LIST_NAMES_SCRIPT = [
    "on run argv",
    f"set recordSep to character id {ord(RECORD_SEPARATOR)}",
    'tell application "Reminders"',
    "set listNames to name of lists",
    "end tell",
    "set AppleScript's text item delimiters to recordSep",
    "return listNames as text",
    "end run",
]

LIST_REMINDERS_SCRIPT = [
    "on run argv",
    f"set recordSep to character id {ord(RECORD_SEPARATOR)}",
    f"set fieldSep to character id {ord(FIELD_SEPARATOR)}",
    'set targetListName to ""',
    "if (count of argv) >= 1 then",
    "set targetListName to item 1 of argv",
    "end if",
    "set includeCompleted to false",
    "if (count of argv) >= 2 then",
    'set includeCompleted to (item 2 of argv) is "true"',
    "end if",
    'tell application "Reminders"',
    "set targetLists to lists",
    'if targetListName is not "" then',
    "set targetLists to {list targetListName}",
    "end if",
    'set output to ""',
    "repeat with L in targetLists",
    "set listName to name of L",
    'set output to output & "LIST" & fieldSep & listName & recordSep',
    "repeat with R in reminders of L",
    "if includeCompleted or (completed of R is false) then",
    'set output to output & "REM" & fieldSep & listName & fieldSep & (name of R) & recordSep',
    "end if",
    "end repeat",
    "end repeat",
    "end tell",
    "return output",
    "end run",
]

# argv: title, list name, notes, then optional year/month/day/seconds-of-day
CREATE_REMINDER_SCRIPT = [
    "on run argv",
    "set reminderTitle to item 1 of argv",
    "set targetListName to item 2 of argv",
    "set reminderNotes to item 3 of argv",
    "set hasDue to (count of argv) >= 7",
    "if hasDue then",
    "set dueDate to (current date)",
    "set day of dueDate to 1",
    "set year of dueDate to (item 4 of argv) as integer",
    "set month of dueDate to (item 5 of argv) as integer",
    "set day of dueDate to (item 6 of argv) as integer",
    "set time of dueDate to (item 7 of argv) as integer",
    "end if",
    'tell application "Reminders"',
    'if targetListName is "" then',
    "set targetList to default list",
    "else",
    "set targetList to list targetListName",
    "end if",
    "set props to {name:reminderTitle}",
    'if reminderNotes is not "" then',
    "set props to props & {body:reminderNotes}",
    "end if",
    "if hasDue then",
    "set props to props & {due date:dueDate}",
    "end if",
    "set newReminder to make new reminder at end of reminders of targetList with properties props",
    "return (name of targetList)",
    "end tell",
    "end run",
]


def parse_list_names(output: str) -> list[str]:
    if not output.strip():
        return []
    return [name.strip() for name in output.split(RECORD_SEPARATOR) if name.strip()]


def parse_reminders(output: str) -> list[dict[str, Any]]:
    """Parse ``LIST`` / ``REM`` records into lists in first-seen order."""
    if not output.strip():
        return []

    lists: dict[str, list[str]] = {}
    for record in filter(None, output.split(RECORD_SEPARATOR)):
        parts = record.split(FIELD_SEPARATOR) + ["", ""]
        kind, list_name = parts[0], parts[1]
        if kind == "LIST":
            lists.setdefault(list_name, [])
        elif kind == "REM":
            reminders = lists.setdefault(list_name, [])
            if parts[2]:
                reminders.append(parts[2])

    return [{"name": name, "reminders": reminders} for name, reminders in lists.items()]


class AppleReminders:
    """Reminders.app access with a TTL cache of list names."""

    def __init__(
        self,
        names_cache: ExpiringCache[list[str]],
        runner: OsascriptRunner = run_osascript,
    ):
        self._names = names_cache
        self._run = runner

    async def list_names(self, refresh: bool = False) -> tuple[list[str], bool]:
        cached = self._names.get()
        if cached is not None and not refresh:
            return cached, True

        result = ensure_success(
            await self._run(LIST_NAMES_SCRIPT, ()),
            "osascript failed to read Reminders lists",
        )
        names = parse_list_names(result.stdout)
        self._names.set(names)
        logger.debug("reminder_lists_refreshed", count=len(names))
        return names, False

    async def reminders(
        self, list_name: Optional[str] = None, include_completed: bool = False
    ) -> tuple[list[dict[str, Any]], bool]:
        """Return ``(lists, truncated)``."""
        argv = [list_name or "", "true" if include_completed else "false"]
        result = ensure_success(
            await self._run(LIST_REMINDERS_SCRIPT, argv),
            "osascript failed to read Reminders",
        )
        return parse_reminders(result.stdout), result.truncated

    async def create(
        self,
        title: str,
        list_name: Optional[str] = None,
        notes: Optional[str] = None,
        due: Optional[datetime] = None,
    ) -> str:
        """Create a reminder and return the name of the list it landed in."""
        argv = [title, list_name or "", notes or ""]
        if due is not None:
            # Reminders wants local wall-clock time
            if due.tzinfo is not None:
                due = due.astimezone().replace(tzinfo=None)
            seconds = due.hour * 3600 + due.minute * 60 + due.second
            argv += [str(due.year), str(due.month), str(due.day), str(seconds)]

        result = ensure_success(
            await self._run(CREATE_REMINDER_SCRIPT, argv),
            "osascript failed to create reminder",
        )
        logger.info("reminder_created", list_name=result.stdout.strip())
        return result.stdout.strip()


class ListNamesInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    refresh: Optional[bool] = Field(
        default=None, description="Force refresh lists instead of using cached data"
    )


class ListRemindersInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    list_name: Optional[str] = Field(
        default=None,
        min_length=1,
        alias="listName",
        description="Optional Reminders list name to filter by",
    )
    include_completed: bool = Field(
        default=False,
        alias="includeCompleted",
        description="Include completed reminders in the results",
    )


class SearchRemindersInput(ListRemindersInput):
    query: str = Field(min_length=1, description="Text to look for in reminder titles")


class CreateReminderInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str = Field(min_length=1, description="Reminder title")
    list_name: Optional[str] = Field(
        default=None,
        min_length=1,
        alias="listName",
        description="Target list name (defaults to the default Reminders list)",
    )
    notes: Optional[str] = Field(default=None, description="Optional notes")
    due_date: Optional[datetime] = Field(
        default=None,
        alias="dueDate",
        description="Optional due date/time in ISO 8601 (local time if no offset)",
    )


class _RemindersTool:
    def __init__(self, reminders: AppleReminders):
        self._reminders = reminders


class RemindersListsTool(_RemindersTool, Tool[ListNamesInput]):
    @property
    def name(self) -> str:
        return "reminders.lists"

    @property
    def description(self) -> str:
        return "List available Apple Reminders lists (cached when possible)."

    @property
    def input_model(self) -> type[ListNamesInput]:
        return ListNamesInput

    async def run(self, params: ListNamesInput, context: ToolContext) -> Any:
        names, cached = await self._reminders.list_names(refresh=bool(params.refresh))
        return {"lists": names, "cached": cached, "count": len(names)}


class RemindersListTool(_RemindersTool, Tool[ListRemindersInput]):
    @property
    def name(self) -> str:
        return "reminders.list"

    @property
    def description(self) -> str:
        return "List reminders from Apple Reminders via AppleScript (read-only)"

    @property
    def input_model(self) -> type[ListRemindersInput]:
        return ListRemindersInput

    async def run(self, params: ListRemindersInput, context: ToolContext) -> Any:
        lists, truncated = await self._reminders.reminders(
            params.list_name, params.include_completed
        )
        return {
            "lists": lists,
            "includeCompleted": params.include_completed,
            "filteredList": params.list_name,
            "truncated": truncated,
        }


class RemindersSearchTool(_RemindersTool, Tool[SearchRemindersInput]):
    @property
    def name(self) -> str:
        return "reminders.search"

    @property
    def description(self) -> str:
        return "Search Apple Reminders by title (case-insensitive, read-only)"

    @property
    def input_model(self) -> type[SearchRemindersInput]:
        return SearchRemindersInput

    async def run(self, params: SearchRemindersInput, context: ToolContext) -> Any:
        lists, truncated = await self._reminders.reminders(
            params.list_name, params.include_completed
        )
        needle = params.query.casefold()
        matches = [
            {"list": entry["name"], "title": title}
            for entry in lists
            for title in entry["reminders"]
            if needle in title.casefold()
        ]
        return {
            "query": params.query,
            "matches": matches,
            "count": len(matches),
            "truncated": truncated,
        }


class RemindersCreateTool(_RemindersTool, Tool[CreateReminderInput]):
    @property
    def name(self) -> str:
        return "reminders.create"

    @property
    def description(self) -> str:
        return "Create a reminder in Apple Reminders, optionally with notes and a due date"

    @property
    def input_model(self) -> type[CreateReminderInput]:
        return CreateReminderInput

    async def run(self, params: CreateReminderInput, context: ToolContext) -> Any:
        list_name = await self._reminders.create(
            params.title, params.list_name, params.notes, params.due_date
        )
        return {
            "created": True,
            "title": params.title,
            "list": list_name,
            "dueDate": params.due_date.isoformat() if params.due_date else None,
        }
