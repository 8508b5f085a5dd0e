"""Schedule timing helpers for directory archive jobs.

Directory jobs are scheduled with cron expressions, evaluated in UTC:

- 5 fields: `minute hour day-of-month month day-of-week`
- 6 fields: `second minute hour day-of-month month day-of-week`

Fields accept `*` (or `?`), single values, `a-b` ranges, `,` lists and `/n`
steps. Months and weekdays also accept three-letter names (`JAN`, `MON`).
Day-of-week runs 0-7 where both 0 and 7 are Sunday. When day-of-month and
day-of-week are both restricted a day matches if either does, as in classic
cron. The `@hourly`, `@daily`, `@weekly`, `@monthly` and `@yearly` shortcuts
are supported too.

All timestamps returned by these helpers are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional


# Long enough to reach the next Feb 29 falling on any given weekday.
MAX_LOOKAHEAD_DAYS = 366 * 8

MACROS: Dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

MONTH_NAMES: Dict[str, int] = {
    name: idx
    for idx, name in enumerate(
        ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"],
        start=1,
    )
}

WEEKDAY_NAMES: Dict[str, int] = {
    name: idx for idx, name in enumerate(["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"])
}


def _parse_value(raw: str, names: Optional[Dict[str, int]]) -> int:
    token = raw.strip().upper()
    if names and token in names:
        return names[token]
    return int(token)


def _parse_field(
    raw: str,
    low: int,
    high: int,
    names: Optional[Dict[str, int]] = None,
) -> FrozenSet[int]:
    """Parse a single cron field into the set of values it allows.

    Args:
        raw: Field text.
        low: Smallest allowed value.
        high: Largest allowed value.
        names: Optional name aliases (month or weekday names).

    Returns:
        FrozenSet[int]: Allowed values.

    Raises:
        ValueError: If the field is malformed or out of range.
    """

    values = set()
    for part in raw.split(","):
        if not part:
            raise ValueError(f"Empty element in cron field {raw!r}")

        step = 1
        base = part
        if "/" in part:
            base, step_raw = part.split("/", 1)
            step = int(step_raw)
            if step <= 0:
                raise ValueError(f"Invalid step in cron field {raw!r}")

        if base in ("*", "?"):
            start, end = low, high
        elif "-" in base:
            start_raw, end_raw = base.split("-", 1)
            start, end = _parse_value(start_raw, names), _parse_value(end_raw, names)
        else:
            start = _parse_value(base, names)
            end = high if "/" in part else start

        if start < low or end > high or start > end:
            raise ValueError(f"Cron field {raw!r} out of range {low}-{high}")

        values.update(range(start, end + 1, step))

    return frozenset(values)


def _is_restricted(raw: str) -> bool:
    return not raw.startswith(("*", "?"))


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron expression."""

    expression: str
    seconds: FrozenSet[int]
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days: FrozenSet[int]
    months: FrozenSet[int]
    weekdays: FrozenSet[int]
    day_restricted: bool
    weekday_restricted: bool

    def matches_day(self, day: date) -> bool:
        """Return True if the schedule may fire on the given calendar day."""

        if day.month not in self.months:
            return False

        dom_match = day.day in self.days
        dow_match = (day.weekday() + 1) % 7 in self.weekdays

        if self.day_restricted and self.weekday_restricted:
            return dom_match or dow_match
        if self.day_restricted:
            return dom_match
        if self.weekday_restricted:
            return dow_match
        return True

    def next_after(self, reference: datetime) -> datetime:
        """Return the first fire time strictly after `reference`.

        Args:
            reference: Reference timestamp.

        Returns:
            datetime: Next fire time (UTC).

        Raises:
            ValueError: If the expression never fires (e.g. `0 0 30 2 *`).
        """

        start = _as_utc(reference).replace(microsecond=0) + timedelta(seconds=1)
        hours = sorted(self.hours)
        minutes = sorted(self.minutes)
        seconds = sorted(self.seconds)

        for offset in range(MAX_LOOKAHEAD_DAYS):
            day = start.date() + timedelta(days=offset)
            if not self.matches_day(day):
                continue

            first_day = offset == 0
            for hour in hours:
                if first_day and hour < start.hour:
                    continue
                for minute in minutes:
                    if first_day and hour == start.hour and minute < start.minute:
                        continue
                    for second in seconds:
                        candidate = datetime(
                            day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc
                        )
                        if candidate >= start:
                            return candidate

        raise ValueError(f"Cron expression never fires: {self.expression!r}")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_cron(expression: str) -> CronSchedule:
    """Parse a cron expression.

    Args:
        expression: 5- or 6-field cron expression, or an `@` shortcut.

    Returns:
        CronSchedule: Parsed schedule.

    Raises:
        ValueError: If the expression is malformed.
    """

    raw = str(expression or "").strip()
    text = MACROS.get(raw.lower(), raw)
    parts = text.split()

    if len(parts) == 5:
        second_raw = "0"
    elif len(parts) == 6:
        second_raw, parts = parts[0], parts[1:]
    else:
        raise ValueError(f"Invalid cron expression (expected 5 or 6 fields): {expression!r}")

    minute_raw, hour_raw, day_raw, month_raw, weekday_raw = parts

    weekdays = _parse_field(weekday_raw, 0, 7, WEEKDAY_NAMES)
    if 7 in weekdays:
        weekdays = (weekdays - {7}) | {0}

    return CronSchedule(
        expression=raw,
        seconds=_parse_field(second_raw, 0, 59),
        minutes=_parse_field(minute_raw, 0, 59),
        hours=_parse_field(hour_raw, 0, 23),
        days=_parse_field(day_raw, 1, 31),
        months=_parse_field(month_raw, 1, 12, MONTH_NAMES),
        weekdays=frozenset(weekdays),
        day_restricted=_is_restricted(day_raw),
        weekday_restricted=_is_restricted(weekday_raw),
    )


def compute_next_fire_time(expression: str, *, reference: Optional[datetime] = None) -> datetime:
    """Compute the next fire time of a cron expression after a reference time.

    Args:
        expression: Cron expression.
        reference: Reference time; defaults to now (UTC).

    Returns:
        datetime: Next fire time (UTC).

    Raises:
        ValueError: If the expression is malformed or never fires.
    """

    reference = reference or datetime.now(timezone.utc)
    return parse_cron(expression).next_after(reference)
