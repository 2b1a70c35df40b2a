"""
macOS Calendar integration via AppleScript.

Uses the osascript CLI that ships with macOS. Event times are returned as
second offsets from the script's "now" so the output does not depend on the
user's date locale. Calendar.app only matches a recurring series by its
first occurrence, so series that began earlier are fetched with their RRULE
and expanded here with python-dateutil.
"""

import asyncio
import logging
import re
import subprocess
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from dateutil.rrule import rrulestr

from fullfocus.errors import AccessDenied, ProviderError
from fullfocus.models import CalendarInfo, ProviderEvent, ensure_aware, local_now

from .base import CalendarProvider, overlaps

logger = logging.getLogger(__name__)

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"

# errAEEventNotPermitted: the user refused automation access to Calendar
_NOT_AUTHORIZED_MARKERS = ("-1743", "Not authorized", "not allowed")

_UNTIL_UTC = re.compile(r"UNTIL=(\d{8}T\d{6})Z", re.IGNORECASE)

_ACCESS_SCRIPT = """
tell application "Calendar"
    return count of calendars
end tell
"""

_CALENDARS_SCRIPT = """
set fieldSep to ASCII character 31
set recordSep to ASCII character 30
set output to ""
tell application "Calendar"
    repeat with cal in calendars
        set output to output & (uid of cal) & fieldSep & (name of cal) & recordSep
    end repeat
end tell
return output
"""

_EVENTS_SCRIPT = """
on textOf(value)
    if value is missing value then return ""
    return value as text
end textOf

on recordOf(evt, calId, now, fieldSep)
    tell application "Calendar"
        set excluded to ""
        try
            repeat with skipped in (excluded dates of evt)
                set excluded to excluded & (((contents of skipped) - now) as integer) & ","
            end repeat
        end try
        return (uid of evt) & fieldSep & calId & fieldSep ¬
            & my textOf(summary of evt) & fieldSep ¬
            & (((start date of evt) - now) as integer) & fieldSep ¬
            & (((end date of evt) - now) as integer) & fieldSep ¬
            & my textOf(location of evt) & fieldSep ¬
            & my textOf(description of evt) & fieldSep ¬
            & my textOf(url of evt) & fieldSep ¬
            & my textOf(recurrence of evt) & fieldSep & excluded
    end tell
end recordOf

on run argv
    set fieldSep to ASCII character 31
    set recordSep to ASCII character 30
    set now to current date
    set windowStart to now + ((item 1 of argv) as integer)
    set windowEnd to now + ((item 2 of argv) as integer)
    set wanted to {}
    if (count of argv) > 2 then set wanted to items 3 thru -1 of argv
    set output to ""
    tell application "Calendar"
        repeat with cal in calendars
            set calId to uid of cal
            if wanted contains calId then
                set evts to (every event of cal whose start date <= windowEnd and end date >= windowStart)
                repeat with evt in evts
                    set output to output & my recordOf(evt, calId, now, fieldSep) & recordSep
                end repeat
                -- series that began before the window; occurrences are expanded by the caller
                try
                    set series to (every event of cal whose start date < windowStart and recurrence is not missing value)
                on error
                    set series to {}
                end try
                repeat with evt in series
                    if my textOf(recurrence of evt) is not "" then
                        set output to output & my recordOf(evt, calId, now, fieldSep) & recordSep
                    end if
                end repeat
            end if
        end repeat
    end tell
    return output
end run
"""


class MacCalendarProvider(CalendarProvider):
    """Reads events from Calendar.app through osascript."""

    name = "macos"

    def __init__(self, timeout: int = 20):
        super().__init__()
        self.timeout = timeout

    async def request_access(self) -> bool:
        """Trigger the automation permission prompt and report the outcome."""
        try:
            await self._run(_ACCESS_SCRIPT)
        except AccessDenied:
            logger.warning("Calendar access denied")
            return False
        except ProviderError as e:
            logger.error(f"Calendar access check failed: {e}")
            return False
        return True

    async def list_calendars(self) -> list[CalendarInfo]:
        output = await self._run(_CALENDARS_SCRIPT)
        calendars = []
        for record in _records(output):
            fields = record.split(FIELD_SEP)
            if len(fields) < 2:
                continue
            calendars.append(CalendarInfo(id=fields[0], title=fields[1]))
        return calendars

    async def query_events(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Iterable[str],
    ) -> list[ProviderEvent]:
        calendar_ids = list(calendar_ids)
        if not calendar_ids:
            return []

        reference = local_now().replace(microsecond=0)
        args = [
            str(int((start - reference).total_seconds())),
            str(int((end - reference).total_seconds())),
            *calendar_ids,
        ]
        output = await self._run(_EVENTS_SCRIPT, *args)
        return parse_events(output, reference, window=(start, end))

    async def _run(self, script: str, *args: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._run_sync(script, args))

    def _run_sync(self, script: str, args: tuple[str, ...]) -> str:
        try:
            result = subprocess.run(
                ["osascript", "-", *args],
                input=script,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ProviderError("osascript is not available on this system") from e
        except subprocess.TimeoutExpired as e:
            raise ProviderError(f"Calendar query timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            if any(marker in stderr for marker in _NOT_AUTHORIZED_MARKERS):
                raise AccessDenied(stderr)
            raise ProviderError(stderr or f"osascript exited with {result.returncode}")

        return result.stdout


def _records(output: str) -> list[str]:
    return [record for record in output.strip("\n").split(RECORD_SEP) if record.strip()]


def parse_events(
    output: str,
    reference: datetime,
    window: tuple[datetime, datetime] | None = None,
) -> list[ProviderEvent]:
    """
    Parse the events script output, anchoring offsets at ``reference``.

    Records of recurring series are expanded into the occurrences that
    overlap ``window``; without a window the series' own dates are kept.
    """
    events = []
    seen: set[str] = set()
    for record in _records(output):
        fields = record.split(FIELD_SEP)
        if len(fields) < 8:
            logger.debug(f"Skipping short record: {record!r}")
            continue
        event_id, calendar_id, title, start_offset, end_offset, location, notes, url = fields[:8]
        rule = fields[8].strip() if len(fields) > 8 else ""
        try:
            start = reference + timedelta(seconds=int(start_offset))
            end = reference + timedelta(seconds=int(end_offset))
            excluded = _excluded_dates(fields[9] if len(fields) > 9 else "", reference)
        except ValueError:
            logger.debug(f"Skipping record with bad offsets: {record!r}")
            continue
        event = ProviderEvent(
            id=event_id.strip(),
            calendar_id=calendar_id,
            title=title,
            start=start,
            end=end,
            location=location or None,
            notes=notes or None,
            url=url or None,
        )
        occurrences = [event]
        if rule and window is not None:
            occurrences = expand_occurrences(event, rule, window[0], window[1], excluded)
        for occurrence in occurrences:
            if occurrence.id not in seen:
                seen.add(occurrence.id)
                events.append(occurrence)
    return events


def _wall(value: datetime) -> datetime:
    """Naive local wall-clock time, so recurrences follow DST changes."""
    return value.astimezone().replace(tzinfo=None, microsecond=0)


def _excluded_dates(field: str, reference: datetime) -> set[datetime]:
    return {
        _wall(reference + timedelta(seconds=int(offset)))
        for offset in field.split(",")
        if offset.strip()
    }


def _local_until(match: re.Match) -> str:
    until = datetime.strptime(match.group(1), "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc)
    return f"UNTIL={_wall(until):%Y%m%dT%H%M%S}"


def expand_occurrences(
    event: ProviderEvent,
    rule: str,
    start: datetime,
    end: datetime,
    excluded: set[datetime] = frozenset(),
) -> list[ProviderEvent]:
    """
    Occurrences of a recurring ``event`` that overlap [start, end].

    ``rule`` is the iCalendar RRULE Calendar.app reports. Each occurrence
    gets its own id so the alert latch treats every occurrence as a new
    event. An unparseable rule keeps the series' own dates.
    """
    text = _UNTIL_UTC.sub(_local_until, rule)
    if not text.upper().startswith("RRULE:"):
        text = f"RRULE:{text}"
    try:
        recurrence = rrulestr(text, dtstart=_wall(event.start))
    except (ValueError, TypeError) as e:
        logger.warning(f"Ignoring recurrence {rule!r} of {event.title!r}: {e}")
        return [event] if overlaps(event, start, end) else []

    duration = event.end - event.start
    occurrences = []
    for occurrence_start in recurrence.between(_wall(start - duration), _wall(end), inc=True):
        if occurrence_start in excluded:
            continue
        aware_start = ensure_aware(occurrence_start)
        occurrences.append(
            event.model_copy(
                update={
                    "id": f"{event.id}/{int(aware_start.timestamp())}",
                    "start": aware_start,
                    "end": aware_start + duration,
                }
            )
        )
    return occurrences
