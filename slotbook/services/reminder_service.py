"""Reminder sweep: finds confirmed bookings whose reminder is due and sends it once.

A booking is claimed by setting reminder_sent_at before anything is sent, using a
conditional write, so overlapping sweeps never send twice. Delivery is best
effort across channels: one successful channel keeps the mark. Only when every
channel reported failure is the mark cleared, so the next sweep retries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotbook.core.config import settings
from slotbook.core.exceptions import NotFound, TransientStoreError
from slotbook.models.booking import Booking, BookingStatus
from slotbook.models.provider import Channel, Provider
from slotbook.services import booking_store
from slotbook.services.notifier import Notifier
from slotbook.services.timegrid import local_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    due: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0


async def _remind(
    session_maker: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    booking: Booking,
    provider: Provider,
    now: datetime,
) -> str:
    async with session_maker() as session:
        claimed = await booking_store.mark_reminder_sent(session, booking.id, now)
        await booking_store.commit(session)
    if not claimed:
        return "skipped"

    channels = provider.parsed_settings().reminders.channels
    results = await notifier.send_reminder(booking, provider, sorted(channels, key=lambda c: c.value))
    if results and not any(results.values()):
        async with session_maker() as session:
            await booking_store.clear_reminder_sent(session, booking.id, now)
            await booking_store.commit(session)
        return "failed"
    return "sent"


async def run_reminder_sweep(
    session_maker: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    now: datetime | None = None,
) -> SweepResult:
    now = now or local_now(settings.timezone)
    result = SweepResult()
    try:
        async with session_maker() as session:
            due = await booking_store.find_due_reminders(session, now, settings.reminder_lookahead_hours)
    except TransientStoreError as e:
        logger.warning("Reminder sweep skipped, store unavailable: %s", e.detail)
        return result

    result.due = len(due)
    for booking, provider in due:
        try:
            outcome = await _remind(session_maker, notifier, booking, provider, now)
        except TransientStoreError as e:
            logger.warning("Reminder for booking %s deferred to next sweep: %s", booking.id, e.detail)
            result.failed += 1
            continue
        except Exception as e:
            logger.exception("Reminder for booking %s failed: %s", booking.id, e)
            result.failed += 1
            continue
        if outcome == "sent":
            result.sent += 1
        elif outcome == "skipped":
            result.skipped += 1
        else:
            result.failed += 1

    if result.due:
        logger.info(
            "Reminder sweep: due=%d sent=%d skipped=%d failed=%d",
            result.due,
            result.sent,
            result.skipped,
            result.failed,
        )
    return result


async def send_reminder_now(
    session: AsyncSession,
    notifier: Notifier,
    booking_id: str,
    provider_id: str,
    now: datetime | None = None,
) -> dict[Channel, bool]:
    """Send a reminder immediately (admin action), regardless of lead time."""
    now = now or local_now(settings.timezone)
    booking = await booking_store.get_booking(session, booking_id)
    if booking is None or booking.provider_id != provider_id or booking.status != BookingStatus.CONFIRMED.value:
        raise NotFound("Booking not found or not confirmed")
    provider = await booking_store.get_provider(session, provider_id)
    channels = provider.parsed_settings().reminders.channels
    results = await notifier.send_reminder(booking, provider, sorted(channels, key=lambda c: c.value))
    if any(results.values()):
        await booking_store.mark_reminder_sent(session, booking_id, now)
        await booking_store.commit(session)
    return results
