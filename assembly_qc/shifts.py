"""Shift window resolution under a fixed local UTC offset.

The line runs two fixed 12-hour shifts, so every window can be derived from a
calendar date and a constant offset without a timezone database::

    day   = [date 08:00, date 20:00)
    night = [date 20:00, date+1 08:00)

All windows are half-open.  Instants stored in Supabase are UTC; they are only
converted to local time for display and for the hourly histogram.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from config.production import LOCAL_UTC_OFFSET_MINUTES, SHIFT_HOURS

from .errors import InvalidDate, ValidationError


@dataclass(frozen=True)
class ShiftWindow:
    """Concrete ``[start, end)`` range for one shift of one calendar date."""

    date: date
    shift: str
    start: datetime
    end: datetime

    @property
    def length_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def as_dict(self) -> dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "shift": self.shift,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


def local_zone(offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES) -> timezone:
    """Return a fixed-offset ``tzinfo`` for ``offset_minutes``."""

    return timezone(timedelta(minutes=offset_minutes))


def parse_calendar_date(value: Any) -> date:
    """Return ``value`` as a :class:`date` or raise :class:`InvalidDate`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value or "").strip()
    if not text:
        raise InvalidDate("Date is required.")
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise InvalidDate(f"Invalid date: {text!r}") from None


def resolve_shift_window(
    day: Any,
    shift: str,
    *,
    offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES,
) -> ShiftWindow:
    """Resolve ``day`` and ``shift`` into a :class:`ShiftWindow`."""

    calendar_day = parse_calendar_date(day)
    label = (shift or "").strip().lower()
    if label not in SHIFT_HOURS:
        raise ValidationError(f"Unknown shift: {shift!r}")

    start_hour, end_hour = SHIFT_HOURS[label]
    zone = local_zone(offset_minutes)
    start = datetime.combine(calendar_day, time(start_hour), tzinfo=zone)
    end_day = calendar_day if end_hour > start_hour else calendar_day + timedelta(days=1)
    end = datetime.combine(end_day, time(end_hour), tzinfo=zone)
    return ShiftWindow(date=calendar_day, shift=label, start=start, end=end)


def today_local(
    now: datetime | None = None, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES
) -> date:
    """Return the current calendar date at the fixed local offset."""

    now = now or datetime.now(timezone.utc)
    return now.astimezone(local_zone(offset_minutes)).date()


def local_midnight(
    now: datetime | None = None, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES
) -> datetime:
    """Return local 00:00 of the day containing ``now``."""

    day = today_local(now, offset_minutes)
    return datetime.combine(day, time(0), tzinfo=local_zone(offset_minutes))


def local_day_bounds(
    start_day: Any,
    end_day: Any | None = None,
    *,
    offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES,
) -> tuple[datetime, datetime]:
    """Return ``[start_day 00:00, end_day+1 00:00)`` in local time."""

    first = parse_calendar_date(start_day)
    last = parse_calendar_date(end_day) if end_day else first
    if last < first:
        raise ValidationError("End date must not be before start date.")
    zone = local_zone(offset_minutes)
    return (
        datetime.combine(first, time(0), tzinfo=zone),
        datetime.combine(last + timedelta(days=1), time(0), tzinfo=zone),
    )


def parse_instant(value: Any) -> datetime | None:
    """Parse a stored timestamp; naive values are treated as UTC."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        cleaned = value.strip()
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(cleaned)
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_instant(value: datetime) -> str:
    """Return fixed-width UTC ISO text so stored values sort lexically."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def local_hour(
    value: Any, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES
) -> int | None:
    """Return the local hour-of-day (0-23) of a stored timestamp."""

    instant = parse_instant(value)
    if instant is None:
        return None
    return instant.astimezone(local_zone(offset_minutes)).hour


__all__ = [
    "ShiftWindow",
    "format_instant",
    "local_day_bounds",
    "local_hour",
    "local_midnight",
    "local_zone",
    "parse_calendar_date",
    "parse_instant",
    "resolve_shift_window",
    "today_local",
]
