"""Booking statistics and the admin dashboard summary."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.models.booking import Booking, BookingStatus
from slotbook.services import booking_store
from slotbook.services.timegrid import day_bounds, local_now

UPCOMING_DAYS = 7
UPCOMING_LIMIT = 20
DASHBOARD_PERIOD_DAYS = 30


class StatsPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


PERIOD_DAYS = {StatsPeriod.WEEK: 7, StatsPeriod.MONTH: 30, StatsPeriod.YEAR: 365}


@dataclass
class Dashboard:
    today: list[Booking]
    upcoming: list[Booking]
    totals: dict[str, int] = field(default_factory=dict)


async def booking_statistics(
    session: AsyncSession,
    provider_id: str,
    period: StatsPeriod = StatsPeriod.MONTH,
    now: datetime | None = None,
) -> tuple[date, list[dict]]:
    """Per-day counts by status for bookings starting on or after the period's first day.

    Returns that first day and the rows, newest day first.
    """
    today = (now or local_now(settings.timezone)).date()
    since = today - timedelta(days=PERIOD_DAYS[period])
    rows = await booking_store.count_bookings_by_day(session, provider_id, day_bounds(since)[0])
    return since, rows


async def dashboard(session: AsyncSession, provider_id: str, now: datetime | None = None) -> Dashboard:
    today = (now or local_now(settings.timezone)).date()
    today_start, today_end = day_bounds(today)
    todays = await booking_store.list_bookings(session, provider_id, start=today_start, end=today_end)
    upcoming = await booking_store.list_bookings(
        session,
        provider_id,
        start=today_end,
        end=day_bounds(today + timedelta(days=UPCOMING_DAYS))[1],
        status=BookingStatus.CONFIRMED,
    )
    rows = await booking_store.count_bookings_by_day(
        session, provider_id, day_bounds(today - timedelta(days=DASHBOARD_PERIOD_DAYS))[0]
    )
    totals = {key: sum(r[key] for r in rows) for key in ("total", "pending", "confirmed", "canceled")}
    return Dashboard(today=todays, upcoming=upcoming[:UPCOMING_LIMIT], totals=totals)
