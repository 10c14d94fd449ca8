import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_admin_provider_id, get_notifier, get_provider_locks, get_session
from slotbook.api.schemas.booking import AdminBookingRequest, AdminCancelBody
from slotbook.api.schemas.provider import ProviderSettingsResponse, ReminderResult
from slotbook.api.schemas.statistics import DashboardResponse, DayStatistics, StatisticsResponse, StatusCounts
from slotbook.core.exceptions import NotFound
from slotbook.models.booking import Actor, Booking, BookingAdminPublic, BookingStatus, CustomerInfo
from slotbook.models.provider import ProviderSettings
from slotbook.services import booking_store
from slotbook.services.booking_service import (
    ProviderLocks,
    cancel_booking,
    create_admin_booking,
    list_bookings,
)
from slotbook.services.notifier import Notifier
from slotbook.services.reminder_service import send_reminder_now
from slotbook.services.statistics import StatsPeriod, booking_statistics, dashboard
from slotbook.services.timegrid import day_bounds

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def to_admin_public(b: Booking) -> BookingAdminPublic:
    return BookingAdminPublic(
        id=b.id,
        provider_id=b.provider_id,
        customer_name=b.customer_name,
        customer_email=b.customer_email,
        customer_phone=b.customer_phone,
        comment=b.comment,
        start_time=b.start_time,
        end_time=b.end_time,
        status=b.status,
        confirmed_at=b.confirmed_at,
        canceled_at=b.canceled_at,
        reminder_sent_at=b.reminder_sent_at,
        created_at=b.created_at,
    )


@router.get("/bookings", response_model=list[BookingAdminPublic])
async def admin_list_bookings(
    start: date | None = Query(None),
    end: date | None = Query(None, description="inclusive"),
    status_filter: BookingStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
) -> list[BookingAdminPublic]:
    bookings = await list_bookings(
        session,
        provider_id,
        start=day_bounds(start)[0] if start else None,
        end=day_bounds(end)[1] if end else None,
        status=status_filter,
    )
    return [to_admin_public(b) for b in bookings]


@router.post("/bookings", response_model=BookingAdminPublic, status_code=status.HTTP_201_CREATED)
async def admin_create_booking(
    body: AdminBookingRequest,
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
    locks: ProviderLocks = Depends(get_provider_locks),
) -> BookingAdminPublic:
    """Book directly as confirmed; working hours are not enforced."""
    customer = CustomerInfo(name=body.name, email=body.email, phone=body.phone, comment=body.comment)
    booking = await create_admin_booking(session, provider_id, customer, body.start_time, locks=locks)
    return to_admin_public(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingAdminPublic)
async def admin_cancel_booking(
    booking_id: str,
    background_tasks: BackgroundTasks,
    body: AdminCancelBody | None = None,
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
    notifier: Notifier = Depends(get_notifier),
) -> BookingAdminPublic:
    before = await booking_store.get_booking(session, booking_id)
    was_canceled = before is not None and not before.is_active
    booking = await cancel_booking(session, booking_id, None, Actor.ADMIN, provider_id=provider_id)
    if not was_canceled and (body is None or body.notify):
        provider = await booking_store.get_provider(session, provider_id)
        background_tasks.add_task(notifier.send_cancellation_notice, booking, provider)
    return to_admin_public(booking)


@router.post("/bookings/{booking_id}/remind", response_model=ReminderResult)
async def admin_remind_now(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
    notifier: Notifier = Depends(get_notifier),
) -> ReminderResult:
    results = await send_reminder_now(session, notifier, booking_id, provider_id)
    return ReminderResult(booking_id=booking_id, channels={c.value: ok for c, ok in results.items()})


@router.get("/settings", response_model=ProviderSettingsResponse)
async def get_provider_settings(
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
) -> ProviderSettingsResponse:
    provider = await booking_store.get_provider(session, provider_id)
    if provider is None:
        raise NotFound("Provider not found")
    return ProviderSettingsResponse(provider_id=provider.id, settings=provider.parsed_settings())


@router.put("/settings", response_model=ProviderSettingsResponse)
async def update_provider_settings(
    body: ProviderSettings,
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
) -> ProviderSettingsResponse:
    """Replace the provider's settings. Existing bookings keep their frozen end times."""
    provider = await booking_store.get_provider(session, provider_id)
    if provider is None:
        raise NotFound("Provider not found")
    provider.settings = body.model_dump(mode="json")
    session.add(provider)
    await booking_store.commit(session)
    logger.info("Provider %s settings updated", provider_id)
    return ProviderSettingsResponse(provider_id=provider.id, settings=body)


@router.get("/statistics", response_model=StatisticsResponse)
async def admin_statistics(
    period: StatsPeriod = Query(StatsPeriod.MONTH),
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
) -> StatisticsResponse:
    """Booking counts per day and status over the last week, month or year."""
    since, rows = await booking_statistics(session, provider_id, period)
    return StatisticsResponse(period=period.value, since=since, days=[DayStatistics(**r) for r in rows])


@router.get("/dashboard", response_model=DashboardResponse)
async def admin_dashboard(
    session: AsyncSession = Depends(get_session),
    provider_id: str = Depends(get_admin_provider_id),
) -> DashboardResponse:
    summary = await dashboard(session, provider_id)
    return DashboardResponse(
        today=[to_admin_public(b) for b in summary.today],
        upcoming=[to_admin_public(b) for b in summary.upcoming],
        last_30_days=StatusCounts(**summary.totals),
    )
