"""Apple Calendar tools (read-only), driven through AppleScript."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Literal, Optional

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

# AppleScript dates carry no zone; the scripts measure seconds from local
# midnight on 1970-01-01, so every epoch here is a naive local value.
LOCAL_EPOCH = datetime(1970, 1, 1)

MAX_RESULTS_LIMIT = 2_000

LIST_CALENDARS_SCRIPT = [
    "on run argv",
    f"set recordSep to character id {ord(RECORD_SEPARATOR)}",
    'tell application "Calendar"',
    "set calendarNames to name of calendars",
    "end tell",
    "set AppleScript's text item delimiters to recordSep",
    "return calendarNames as text",
    "end run",
]

LIST_EVENTS_SCRIPT = [
    "on run argv",
    f"set recordSep to character id {ord(RECORD_SEPARATOR)}",
    f"set fieldSep to character id {ord(FIELD_SEPARATOR)}",
    "set startSeconds to (item 1 of argv) as integer",
    "set endSeconds to (item 2 of argv) as integer",
    'set calendarArg to ""',
    "if (count of argv) >= 3 then",
    "set calendarArg to item 3 of argv",
    "end if",
    "set maxResults to 0",
    "if (count of argv) >= 4 then",
    "try",
    "set maxResults to (item 4 of argv) as integer",
    "on error",
    "set maxResults to 0",
    "end try",
    "end if",
    "set hasLimit to maxResults > 0",
    "set totalCount to 0",
    "set shouldStop to false",
    "set epochDate to (current date)",
    "set year of epochDate to 1970",
    "set month of epochDate to January",
    "set day of epochDate to 1",
    "set time of epochDate to 0",
    "set startDate to epochDate + startSeconds",
    "set endDate to epochDate + endSeconds",
    "set calendarNames to {}",
    'if calendarArg is not "" then',
    "set AppleScript's text item delimiters to recordSep",
    "set calendarNames to text items of calendarArg",
    "set AppleScript's text item delimiters to \"\"",
    "end if",
    'set output to ""',
    'tell application "Calendar"',
    'if calendarArg is "" then',
    "set targetCalendars to calendars",
    "else",
    "set targetCalendars to {}",
    "repeat with C in calendarNames",
    "try",
    "set end of targetCalendars to calendar (C as string)",
    "end try",
    "end repeat",
    "end if",
    "repeat with Cal in targetCalendars",
    "if shouldStop then exit repeat",
    "set calName to name of Cal",
    "set matchingEvents to (events of Cal whose start date < endDate and end date > startDate)",
    "repeat with E in matchingEvents",
    "set eventTitle to summary of E",
    "set eventStart to start date of E",
    "set eventEnd to end date of E",
    "set allDayFlag to false",
    "try",
    "set allDayFlag to |all day event| of E",
    "on error",
    "set allDayFlag to false",
    "end try",
    "set startEpoch to (eventStart - epochDate)",
    "set endEpoch to (eventEnd - epochDate)",
    'set output to output & "EVT" & fieldSep & calName & fieldSep & eventTitle & fieldSep'
    " & (startEpoch as string) & fieldSep & (endEpoch as string) & fieldSep"
    " & (allDayFlag as string) & recordSep",
    "set totalCount to totalCount + 1",
    "if hasLimit and totalCount >= maxResults then",
    "set shouldStop to true",
    "exit repeat",
    "end if",
    "end repeat",
    "end repeat",
    "end tell",
    "return output",
    "end run",
]


@dataclass
class CalendarEvent:
    calendar: str
    title: str
    start_epoch: int
    end_epoch: int
    all_day: bool


@dataclass
class EventListing:
    events: list[CalendarEvent]
    limit_reached: bool
    truncated: bool


class UnknownCalendarError(ValueError):
    pass


def to_local_epoch(moment: datetime) -> int:
    return int((moment - LOCAL_EPOCH).total_seconds())


def from_local_epoch(seconds: int) -> datetime:
    return LOCAL_EPOCH + timedelta(seconds=seconds)


def parse_calendar_names(output: str) -> list[str]:
    if not output.strip():
        return []
    return [name.strip() for name in output.split(RECORD_SEPARATOR) if name.strip()]


def parse_events(output: str) -> list[CalendarEvent]:
    """Parse ``EVT`` records, skipping any that are malformed."""
    if not output.strip():
        return []

    events: list[CalendarEvent] = []
    for record in filter(None, output.split(RECORD_SEPARATOR)):
        parts = record.split(FIELD_SEPARATOR) + [""] * 6
        if parts[0] != "EVT":
            continue
        calendar = parts[1].strip()
        try:
            start = int(parts[3].strip() or "0")
            end = int(parts[4].strip() or "0")
        except ValueError:
            continue
        if not calendar:
            continue
        events.append(
            CalendarEvent(
                calendar=calendar,
                title=parts[2].strip(),
                start_epoch=start,
                end_epoch=end,
                all_day=parts[5].strip().lower() == "true",
            )
        )
    return events


def group_events_by_day(events: list[CalendarEvent]) -> list[dict[str, Any]]:
    """Group events by their local start day; days and events sorted ascending."""
    days: dict[str, list[tuple[datetime, dict[str, Any]]]] = {}
    for event in events:
        start = from_local_epoch(event.start_epoch)
        end = from_local_epoch(event.end_epoch)
        days.setdefault(start.date().isoformat(), []).append(
            (
                start,
                {
                    "calendar": event.calendar,
                    "title": event.title,
                    "start": start.astimezone().isoformat(),
                    "end": end.astimezone().isoformat(),
                    "allDay": event.all_day,
                },
            )
        )

    return [
        {"date": key, "events": [e for _, e in sorted(days[key], key=lambda item: item[0])]}
        for key in sorted(days)
    ]


def parse_date_only(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError("Invalid date: use YYYY-MM-DD") from e


def week_range(reference: date, week_starts_on: str) -> tuple[date, date]:
    offset = reference.weekday() if week_starts_on == "monday" else (reference.weekday() + 1) % 7
    start = reference - timedelta(days=offset)
    return start, start + timedelta(days=7)


class AppleCalendar:
    """Calendar.app access with a TTL cache of calendar names."""

    def __init__(
        self,
        names_cache: ExpiringCache[list[str]],
        runner: OsascriptRunner = run_osascript,
    ):
        self._names = names_cache
        self._run = runner

    async def calendar_names(self, refresh: bool = False) -> tuple[list[str], bool]:
        """Return ``(names, from_cache)``."""
        cached = self._names.get()
        if cached is not None and not refresh:
            return cached, True

        result = ensure_success(
            await self._run(LIST_CALENDARS_SCRIPT, ()),
            "osascript failed to read Calendars",
        )
        names = parse_calendar_names(result.stdout)
        self._names.set(names)
        logger.debug("calendar_names_refreshed", count=len(names))
        return names, False

    def check_known(self, calendars: list[str]) -> None:
        cached = self._names.get()
        if cached is None:
            return
        missing = [name for name in calendars if name not in cached]
        if missing:
            raise UnknownCalendarError(
                f'Unknown Calendar(s) "{", ".join(missing)}". '
                f"Available calendars: {', '.join(cached)}"
            )

    async def events(
        self,
        start: datetime,
        end: datetime,
        calendars: Optional[list[str]] = None,
        max_results: Optional[int] = None,
    ) -> EventListing:
        if calendars:
            self.check_known(calendars)

        argv = [
            str(to_local_epoch(start)),
            str(to_local_epoch(end)),
            RECORD_SEPARATOR.join(calendars) if calendars else "",
            str(max_results) if max_results else "",
        ]
        result = ensure_success(
            await self._run(LIST_EVENTS_SCRIPT, argv),
            "osascript failed to read Calendar events",
        )
        events = parse_events(result.stdout)
        return EventListing(
            events=events,
            limit_reached=max_results is not None and len(events) >= max_results,
            truncated=result.truncated,
        )


class ListCalendarsInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    refresh: Optional[bool] = Field(
        default=None, description="Force refresh calendars instead of using cached data"
    )


class _EventFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    calendars: Optional[list[str]] = Field(
        default=None, min_length=1, description="Optional calendar names to filter by"
    )
    max_results: Optional[int] = Field(
        default=None,
        gt=0,
        le=MAX_RESULTS_LIMIT,
        alias="maxResults",
        description="Limit total events returned across calendars",
    )


class ListByDayInput(_EventFilter):
    date: str = Field(
        pattern=r"^\d{4}-\d{2}-\d{2}$", description="Date in YYYY-MM-DD (local time)"
    )


class WeekEventsInput(_EventFilter):
    week_starts_on: Literal["monday", "sunday"] = Field(
        default="monday", alias="weekStartsOn", description="Week start day for the range"
    )


class CalendarListsTool(Tool[ListCalendarsInput]):
    def __init__(self, calendar: AppleCalendar):
        self._calendar = calendar

    @property
    def name(self) -> str:
        return "calendar.lists"

    @property
    def description(self) -> str:
        return (
            "List available Apple Calendar calendars (cached when possible). "
            "Use this when you need a calendar name."
        )

    @property
    def input_model(self) -> type[ListCalendarsInput]:
        return ListCalendarsInput

    async def run(self, params: ListCalendarsInput, context: ToolContext) -> Any:
        names, cached = await self._calendar.calendar_names(refresh=bool(params.refresh))
        return {"calendars": names, "cached": cached, "count": len(names)}


def _listing_payload(
    listing: EventListing, calendars: Optional[list[str]], range_: dict[str, str]
) -> dict[str, Any]:
    return {
        "range": range_,
        "calendars": calendars,
        "days": group_events_by_day(listing.events),
        "totalCount": len(listing.events),
        "limitReached": listing.limit_reached,
        "truncated": listing.truncated,
    }


class CalendarListByDayTool(Tool[ListByDayInput]):
    def __init__(self, calendar: AppleCalendar):
        self._calendar = calendar

    @property
    def name(self) -> str:
        return "calendar.listByDay"

    @property
    def description(self) -> str:
        return "List Apple Calendar events for a specific day (local time), grouped by day."

    @property
    def input_model(self) -> type[ListByDayInput]:
        return ListByDayInput

    async def run(self, params: ListByDayInput, context: ToolContext) -> Any:
        day = parse_date_only(params.date)
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)

        listing = await self._calendar.events(start, end, params.calendars, params.max_results)
        return _listing_payload(
            listing,
            params.calendars,
            {"start": start.date().isoformat(), "end": end.date().isoformat()},
        )


class CalendarWeekTool(Tool[WeekEventsInput]):
    def __init__(self, calendar: AppleCalendar, today: Callable[[], date] = date.today):
        self._calendar = calendar
        self._today = today

    @property
    def name(self) -> str:
        return "calendar.week"

    @property
    def description(self) -> str:
        return "List Apple Calendar events for the current week (local time), grouped by day."

    @property
    def input_model(self) -> type[WeekEventsInput]:
        return WeekEventsInput

    async def run(self, params: WeekEventsInput, context: ToolContext) -> Any:
        first, last = week_range(self._today(), params.week_starts_on)
        start = datetime.combine(first, datetime.min.time())
        end = datetime.combine(last, datetime.min.time())

        listing = await self._calendar.events(start, end, params.calendars, params.max_results)
        return _listing_payload(
            listing,
            params.calendars,
            {
                "start": first.isoformat(),
                "end": last.isoformat(),
                "weekStartsOn": params.week_starts_on,
            },
        )
