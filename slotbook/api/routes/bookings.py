import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_notifier, get_provider_locks, get_session
from slotbook.api.schemas.booking import BookingCreatedResponse, BookingRequest, TokenBody
from slotbook.models.booking import Actor, Booking, BookingPublic, CustomerInfo
from slotbook.services import booking_store
from slotbook.services.booking_service import (
    ProviderLocks,
    cancel_booking,
    confirm_booking,
    create_booking,
    get_booking_by_token,
)
from slotbook.services.notifier import Notifier, cancel_link, confirm_link

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def to_public(b: Booking) -> BookingPublic:
    return BookingPublic(
        id=b.id,
        provider_id=b.provider_id,
        customer_name=b.customer_name,
        start_time=b.start_time,
        end_time=b.end_time,
        status=b.status,
        confirmed_at=b.confirmed_at,
        canceled_at=b.canceled_at,
    )


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def request_booking(
    body: BookingRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    locks: ProviderLocks = Depends(get_provider_locks),
) -> BookingCreatedResponse:
    customer = CustomerInfo(name=body.name, email=body.email, phone=body.phone, comment=body.comment)
    booking = await create_booking(session, body.provider_id, customer, body.start_time, locks=locks)
    provider = await booking_store.get_provider(session, body.provider_id)
    # Double opt-in mail goes out after the response; failures are only logged
    background_tasks.add_task(
        notifier.send_confirmation_request,
        booking,
        provider,
        confirm_link(booking),
        cancel_link(booking),
    )
    return BookingCreatedResponse(
        id=booking.id,
        status=booking.status,
        start_time=booking.start_time,
        end_time=booking.end_time,
    )


@router.get("/{booking_id}", response_model=BookingPublic)
async def booking_details(
    booking_id: str,
    token: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    """Booking details for the customer; either of the booking's tokens is accepted."""
    return to_public(await get_booking_by_token(session, booking_id, token))


@router.post("/{booking_id}/confirm", response_model=BookingPublic)
async def confirm(
    booking_id: str,
    body: TokenBody,
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    return to_public(await confirm_booking(session, booking_id, body.token))


@router.delete("/{booking_id}", response_model=BookingPublic)
async def cancel(
    booking_id: str,
    background_tasks: BackgroundTasks,
    token: str = Query(...),
    session: AsyncSession = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> BookingPublic:
    before = await booking_store.get_booking(session, booking_id)
    was_canceled = before is not None and not before.is_active
    booking = await cancel_booking(session, booking_id, token, Actor.CUSTOMER)
    if not was_canceled:
        provider = await booking_store.get_provider(session, booking.provider_id)
        background_tasks.add_task(notifier.send_cancellation_notice, booking, provider)
    return to_public(booking)
