"""Booking store: the queries and conditional writes the booking engine relies on.

Every call is bounded by `store_timeout_seconds`; timeouts and connection
failures surface as TransientStoreError and are never retried here.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.exceptions import ConfigError, TransientStoreError
from slotbook.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from slotbook.models.provider import Provider

logger = logging.getLogger(__name__)


async def _bounded(awaitable):
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.store_timeout_seconds)
    except TimeoutError as e:
        raise TransientStoreError("Booking store timed out") from e
    except (OperationalError, InterfaceError) as e:
        raise TransientStoreError(f"Booking store unavailable: {type(e).__name__}") from e


async def _execute(session: AsyncSession, stmt):
    return await _bounded(session.execute(stmt))


async def commit(session: AsyncSession) -> None:
    await _bounded(session.commit())


async def get_provider(session: AsyncSession, provider_id: str, for_update: bool = False) -> Provider | None:
    stmt = select(Provider).where(Provider.id == provider_id)
    if for_update:
        # Serializes concurrent creates for one provider on PostgreSQL; a no-op on SQLite
        stmt = stmt.with_for_update()
    result = await _execute(session, stmt)
    return result.scalar_one_or_none()


async def get_booking(session: AsyncSession, booking_id: str) -> Booking | None:
    result = await _execute(
        session,
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def find_overlapping(
    session: AsyncSession, provider_id: str, start: datetime, end: datetime
) -> list[Booking]:
    """Non-canceled bookings of the provider whose [start_time, end_time) intersects [start, end)."""
    result = await _execute(
        session,
        select(Booking)
        .where(
            Booking.provider_id == provider_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.start_time < end,
            Booking.end_time > start,
        )
        .order_by(Booking.start_time),
    )
    return list(result.scalars().all())


async def insert_booking(session: AsyncSession, booking: Booking) -> bool:
    """Insert a booking. Returns False (and rolls back) when a uniqueness constraint rejects it."""
    session.add(booking)
    try:
        await _bounded(session.flush())
    except IntegrityError:
        await session.rollback()
        logger.info(
            "Insert rejected by unique constraint: provider=%s start=%s",
            booking.provider_id,
            booking.start_time,
        )
        return False
    return True


async def update_booking_status(
    session: AsyncSession,
    booking_id: str,
    expected: BookingStatus,
    new: BookingStatus,
    now: datetime,
) -> bool:
    """Move a booking from `expected` to `new`. Returns False if it was no longer in `expected`."""
    values: dict = {"status": new.value}
    if new == BookingStatus.CONFIRMED:
        values["confirmed_at"] = now
    elif new == BookingStatus.CANCELED:
        values["canceled_at"] = now
    result = await _execute(
        session,
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False),
    )
    return (result.rowcount or 0) == 1


async def list_bookings(
    session: AsyncSession,
    provider_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    q = select(Booking).where(Booking.provider_id == provider_id).order_by(Booking.start_time)
    if start:
        q = q.where(Booking.start_time >= start)
    if end:
        q = q.where(Booking.start_time < end)
    if status:
        q = q.where(Booking.status == status.value)
    result = await _execute(session, q)
    return list(result.scalars().all())


async def count_bookings_by_day(
    session: AsyncSession, provider_id: str, start: datetime, end: datetime | None = None
) -> list[dict]:
    """Per-day booking counts by status for bookings starting in [start, end), newest day first."""
    day = func.date(Booking.start_time)

    def _count(status: BookingStatus):
        return func.count(case((Booking.status == status.value, 1)))

    q = (
        select(
            day.label("day"),
            func.count().label("total"),
            _count(BookingStatus.PENDING).label("pending"),
            _count(BookingStatus.CONFIRMED).label("confirmed"),
            _count(BookingStatus.CANCELED).label("canceled"),
        )
        .where(Booking.provider_id == provider_id, Booking.start_time >= start)
        .group_by(day)
        .order_by(day.desc())
    )
    if end:
        q = q.where(Booking.start_time < end)
    result = await _execute(session, q)
    rows = []
    for row in result.all():
        # SQLite returns DATE() as text
        d = row.day if isinstance(row.day, date) else date.fromisoformat(row.day)
        rows.append(
            {"date": d, "total": row.total, "pending": row.pending, "confirmed": row.confirmed, "canceled": row.canceled}
        )
    return rows


async def find_due_reminders(
    session: AsyncSession, now: datetime, lookahead_hours: int
) -> list[tuple[Booking, Provider]]:
    """Confirmed, not yet reminded, future bookings whose provider's reminder lead time has arrived."""
    result = await _execute(
        session,
        select(Booking, Provider)
        .join(Provider, Booking.provider_id == Provider.id)
        .where(
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.reminder_sent_at.is_(None),
            Booking.start_time > now,
            Booking.start_time <= now + timedelta(hours=lookahead_hours),
        )
        .order_by(Booking.start_time),
    )
    due: list[tuple[Booking, Provider]] = []
    for booking, provider in result.all():
        try:
            reminders = provider.parsed_settings().reminders
        except ConfigError as e:
            logger.warning("Skipping reminders for provider %s: %s", provider.id, e.detail)
            continue
        if reminders.enabled and booking.start_time - now <= timedelta(hours=reminders.hours_before):
            due.append((booking, provider))
    return due


async def mark_reminder_sent(session: AsyncSession, booking_id: str, now: datetime) -> bool:
    """Set reminder_sent_at if it is still NULL and the booking is still confirmed.

    False means another sweep got there first or the booking was canceled since it was selected.
    """
    result = await _execute(
        session,
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.reminder_sent_at.is_(None),
        )
        .values(reminder_sent_at=now)
        .execution_options(synchronize_session=False),
    )
    return (result.rowcount or 0) == 1


async def clear_reminder_sent(session: AsyncSession, booking_id: str, marked_at: datetime) -> bool:
    """Undo our own mark so a later sweep retries; leaves anyone else's mark alone."""
    result = await _execute(
        session,
        update(Booking)
        .where(Booking.id == booking_id, Booking.reminder_sent_at == marked_at)
        .values(reminder_sent_at=None)
        .execution_options(synchronize_session=False),
    )
    return (result.rowcount or 0) == 1
