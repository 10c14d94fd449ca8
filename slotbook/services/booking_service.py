"""Booking lifecycle: create, confirm and cancel.

States: pending -> confirmed -> canceled, and pending -> canceled. canceled is terminal.
The overlap check and the insert run under a per-provider lock and commit before
the lock is released, so two concurrent requests for one window produce exactly
one booking and one SlotConflict.
"""

import asyncio
import logging
import secrets
from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.core.config import settings
from slotbook.core.exceptions import (
    DeadlineExceeded,
    InvalidTime,
    InvalidToken,
    NotFound,
    SlotConflict,
    TransientStoreError,
)
from slotbook.models.booking import Actor, Booking, BookingStatus, CustomerInfo
from slotbook.services import booking_store
from slotbook.services.availability import conflicts_with, is_bookable_start
from slotbook.services.timegrid import local_now, to_local_naive

logger = logging.getLogger(__name__)


class ProviderLocks:
    """One asyncio.Lock per provider id, guarding check-and-insert within this process."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, provider_id: str) -> asyncio.Lock:
        return self._locks[provider_id]


provider_locks = ProviderLocks()


def _new_token() -> str:
    return secrets.token_urlsafe(32)


def _token_matches(stored: str, presented: str | None) -> bool:
    if not presented:
        return False
    return secrets.compare_digest(stored.encode(), presented.encode())


def _now(now: datetime | None) -> datetime:
    return now or local_now(settings.timezone)


async def _create(
    session: AsyncSession,
    provider_id: str,
    customer: CustomerInfo,
    start_time: datetime,
    status: BookingStatus,
    now: datetime | None,
    locks: ProviderLocks | None,
    enforce_hours: bool,
) -> Booking:
    now = _now(now)
    start_time = to_local_naive(start_time, settings.timezone)
    if start_time <= now:
        raise InvalidTime("Start time must be in the future")

    async with (locks or provider_locks).get(provider_id):
        provider = await booking_store.get_provider(session, provider_id, for_update=True)
        if provider is None:
            raise NotFound("Provider not found")
        provider_settings = provider.parsed_settings()
        end_time = start_time + timedelta(minutes=provider_settings.slot_duration_minutes)
        if enforce_hours and not is_bookable_start(provider_settings, start_time):
            raise InvalidTime("Requested time is outside the provider's bookable hours")

        buffer_minutes = provider_settings.buffer_minutes
        candidates = await booking_store.find_overlapping(
            session, provider_id, start_time, end_time + timedelta(minutes=buffer_minutes)
        )
        if any(conflicts_with(start_time, end_time, buffer_minutes, b.start_time, b.end_time) for b in candidates):
            raise SlotConflict("This time slot is already booked")

        booking = Booking(
            provider_id=provider_id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            comment=customer.comment,
            start_time=start_time,
            end_time=end_time,
            status=status.value,
            confirmation_token=_new_token(),
            cancellation_token=_new_token(),
            confirmed_at=now if status == BookingStatus.CONFIRMED else None,
        )
        if not await booking_store.insert_booking(session, booking):
            raise SlotConflict("This time slot is already booked")
        await booking_store.commit(session)

    logger.info("Booking %s created for provider %s at %s (%s)", booking.id, provider_id, start_time, status.value)
    return booking


async def create_booking(
    session: AsyncSession,
    provider_id: str,
    customer: CustomerInfo,
    start_time: datetime,
    now: datetime | None = None,
    locks: ProviderLocks | None = None,
) -> Booking:
    """Public booking request: validated against working hours, starts as pending."""
    return await _create(session, provider_id, customer, start_time, BookingStatus.PENDING, now, locks, True)


async def create_admin_booking(
    session: AsyncSession,
    provider_id: str,
    customer: CustomerInfo,
    start_time: datetime,
    now: datetime | None = None,
    locks: ProviderLocks | None = None,
) -> Booking:
    """Admin booking: same overlap rule, may fall outside working hours, starts confirmed."""
    return await _create(session, provider_id, customer, start_time, BookingStatus.CONFIRMED, now, locks, False)


async def get_booking_by_token(session: AsyncSession, booking_id: str, token: str) -> Booking:
    booking = await booking_store.get_booking(session, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if not (_token_matches(booking.cancellation_token, token) or _token_matches(booking.confirmation_token, token)):
        raise InvalidToken()
    return booking


async def confirm_booking(
    session: AsyncSession, booking_id: str, token: str, now: datetime | None = None
) -> Booking:
    booking = await booking_store.get_booking(session, booking_id)
    if booking is None or booking.status == BookingStatus.CANCELED.value:
        raise NotFound("Booking not found")
    if not _token_matches(booking.confirmation_token, token):
        raise InvalidToken()
    if booking.status == BookingStatus.CONFIRMED.value:
        return booking

    changed = await booking_store.update_booking_status(
        session, booking_id, BookingStatus.PENDING, BookingStatus.CONFIRMED, _now(now)
    )
    await booking_store.commit(session)
    booking = await booking_store.get_booking(session, booking_id)
    if not changed and booking.status != BookingStatus.CONFIRMED.value:
        # Canceled between our read and write
        raise NotFound("Booking not found")
    if changed:
        logger.info("Booking %s confirmed", booking_id)
    return booking


async def cancel_booking(
    session: AsyncSession,
    booking_id: str,
    token: str | None,
    actor: Actor = Actor.CUSTOMER,
    now: datetime | None = None,
    provider_id: str | None = None,
) -> Booking:
    """Cancel a booking.

    Customers must present the cancellation token and respect the provider's
    cancellation deadline. Admins may skip the token for bookings of their own
    provider (`provider_id`) and are not bound by the deadline.
    """
    now = _now(now)
    booking = await booking_store.get_booking(session, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if actor == Actor.ADMIN and provider_id is not None and booking.provider_id != provider_id:
        raise NotFound("Booking not found")
    if token is not None or actor == Actor.CUSTOMER or provider_id is None:
        if not _token_matches(booking.cancellation_token, token):
            raise InvalidToken()
    if booking.status == BookingStatus.CANCELED.value:
        return booking

    if actor == Actor.CUSTOMER:
        provider = await booking_store.get_provider(session, booking.provider_id)
        deadline_hours = provider.parsed_settings().cancellation_deadline_hours
        if booking.start_time - now < timedelta(hours=deadline_hours):
            raise DeadlineExceeded(f"Bookings can only be canceled up to {deadline_hours} hours in advance")

    # The status can move at most pending -> confirmed -> canceled under us
    for _ in range(3):
        current = BookingStatus(booking.status)
        if current == BookingStatus.CANCELED:
            return booking
        if await booking_store.update_booking_status(session, booking_id, current, BookingStatus.CANCELED, now):
            break
        booking = await booking_store.get_booking(session, booking_id)
    else:
        raise TransientStoreError("Booking changed concurrently, try again")
    await booking_store.commit(session)
    booking = await booking_store.get_booking(session, booking_id)
    logger.info("Booking %s canceled by %s", booking_id, actor.value)
    return booking


async def list_bookings(
    session: AsyncSession,
    provider_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    return await booking_store.list_bookings(session, provider_id, start=start, end=end, status=status)
