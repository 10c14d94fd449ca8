"""Slot generation from a provider's working hours, breaks and buffer."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.exceptions import ConfigError, InvalidTime, NotFound
from slotbook.models.booking import ACTIVE_STATUSES, Booking
from slotbook.models.provider import ProviderSettings
from slotbook.services import booking_store
from slotbook.services.timegrid import at_minutes, day_bounds, minutes_of, overlaps, weekday_index

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 31


class Slot(NamedTuple):
    start: datetime
    end: datetime
    available: bool


def conflicts_with(start: datetime, end: datetime, buffer_minutes: int, booked_start: datetime, booked_end: datetime) -> bool:
    """A candidate [start, end + buffer) collides with a booked [booked_start, booked_end)."""
    return overlaps(start, end + timedelta(minutes=buffer_minutes), booked_start, booked_end)


def _in_break(settings: ProviderSettings, day: date, start: datetime, end: datetime) -> bool:
    return any(
        overlaps(start, end, at_minutes(day, b.start), at_minutes(day, b.end))
        for b in settings.breaks_for(weekday_index(day))
    )


def compute_slots(settings: ProviderSettings, day: date, bookings: Iterable[Booking]) -> list[Slot]:
    """Returns all slot candidates for `day`, ascending, each flagged available or not.

    `bookings` are the provider's bookings touching that day; canceled ones are ignored.
    """
    duration = timedelta(minutes=settings.slot_duration_minutes)
    booked = [(b.start_time, b.end_time) for b in bookings if b.status in ACTIVE_STATUSES]
    slots: list[Slot] = []
    for working in settings.ranges_for(weekday_index(day)):
        cursor = at_minutes(day, working.start)
        range_end = at_minutes(day, working.end)
        while cursor + duration <= range_end:
            slot_end = cursor + duration
            taken = _in_break(settings, day, cursor, slot_end) or any(
                conflicts_with(cursor, slot_end, settings.buffer_minutes, b_start, b_end)
                for b_start, b_end in booked
            )
            slots.append(Slot(cursor, slot_end, not taken))
            cursor = slot_end
    slots.sort(key=lambda s: s.start)
    return slots


def is_bookable_start(settings: ProviderSettings, start: datetime) -> bool:
    """True if `start` is on the slot grid of a working range and the slot misses every break."""
    day = start.date()
    minute = minutes_of(start)
    if start.second or start.microsecond:
        return False
    duration = settings.slot_duration_minutes
    for working in settings.ranges_for(weekday_index(day)):
        offset = minute - working.start
        if offset >= 0 and offset % duration == 0 and minute + duration <= working.end:
            return not _in_break(settings, day, start, start + timedelta(minutes=duration))
    return False


async def _load_settings(session: AsyncSession, provider_id: str) -> ProviderSettings | None:
    provider = await booking_store.get_provider(session, provider_id)
    if provider is None:
        raise NotFound("Provider not found")
    try:
        return provider.parsed_settings()
    except ConfigError as e:
        logger.warning("Provider %s has invalid settings, no slots offered: %s", provider_id, e.detail)
        return None


async def get_slots_for_date(session: AsyncSession, provider_id: str, day: date) -> list[Slot]:
    settings = await _load_settings(session, provider_id)
    if settings is None:
        return []
    start, end = day_bounds(day)
    # A trailing buffer can reach into bookings just past midnight
    end += timedelta(minutes=settings.buffer_minutes)
    bookings = await booking_store.find_overlapping(session, provider_id, start, end)
    return compute_slots(settings, day, bookings)


async def get_slots_for_range(
    session: AsyncSession, provider_id: str, first_day: date, days: int
) -> dict[date, list[Slot]]:
    """Slots for `days` consecutive days starting at `first_day`, one booking query for the whole range."""
    if not 1 <= days <= MAX_RANGE_DAYS:
        raise InvalidTime(f"days must be between 1 and {MAX_RANGE_DAYS}")
    settings = await _load_settings(session, provider_id)
    all_days = [first_day + timedelta(days=i) for i in range(days)]
    if settings is None:
        return {d: [] for d in all_days}
    range_start, _ = day_bounds(all_days[0])
    _, range_end = day_bounds(all_days[-1])
    range_end += timedelta(minutes=settings.buffer_minutes)
    bookings = await booking_store.find_overlapping(session, provider_id, range_start, range_end)
    out: dict[date, list[Slot]] = {}
    for d in all_days:
        d_start, d_end = day_bounds(d)
        d_end += timedelta(minutes=settings.buffer_minutes)
        on_day = [b for b in bookings if overlaps(b.start_time, b.end_time, d_start, d_end)]
        out[d] = compute_slots(settings, d, on_day)
    return out
