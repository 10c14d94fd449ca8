"""Clock-time helpers: day-relative minute offsets, weekdays and interval overlap."""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight. "24:00" is accepted as an end bound."""
    hours_str, sep, minutes_str = value.strip().partition(":")
    if not sep or not hours_str.isdigit() or not minutes_str.isdigit() or len(minutes_str) != 2:
        raise ValueError(f"invalid clock time {value!r}, expected HH:MM")
    hours, minutes = int(hours_str), int(minutes_str)
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise ValueError(f"invalid clock time {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_of(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def at_minutes(d: date, minutes: int) -> datetime:
    """Naive datetime for `minutes` past midnight of `d` (1440 is next midnight)."""
    return datetime(d.year, d.month, d.day) + timedelta(minutes=minutes)


def day_bounds(d: date) -> tuple[datetime, datetime]:
    start = at_minutes(d, 0)
    return start, start + timedelta(days=1)


def weekday_index(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return d.isoweekday() % 7


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open intervals [a_start, a_end) and [b_start, b_end) intersect."""
    return a_start < b_end and b_start < a_end


def local_now(tz_name: str) -> datetime:
    """Current wall-clock time in `tz_name`, as a naive datetime."""
    return datetime.now(UTC).astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def to_local_naive(dt: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to naive wall-clock time in `tz_name`; naive input is kept."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)
