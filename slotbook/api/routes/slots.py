from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.api.deps import get_session
from slotbook.api.schemas.booking import AvailableSlotsResponse, SlotInfo, SlotRangeResponse
from slotbook.core.exceptions import NotFound
from slotbook.models.provider import ProviderPublic
from slotbook.services import booking_store
from slotbook.services.availability import MAX_RANGE_DAYS, Slot, get_slots_for_date, get_slots_for_range

router = APIRouter(prefix="/providers", tags=["slots"])


def _slot_info(s: Slot) -> SlotInfo:
    return SlotInfo(start=s.start, end=s.end, available=s.available)


@router.get("/{provider_id}", response_model=ProviderPublic)
async def provider_profile(
    provider_id: str,
    session: AsyncSession = Depends(get_session),
) -> ProviderPublic:
    provider = await booking_store.get_provider(session, provider_id)
    if provider is None:
        raise NotFound("Provider not found")
    provider_settings = provider.parsed_settings()
    return ProviderPublic(
        id=provider.id,
        name=provider.name,
        subdomain=provider.subdomain,
        slot_duration_minutes=provider_settings.slot_duration_minutes,
        cancellation_deadline_hours=provider_settings.cancellation_deadline_hours,
    )


@router.get("/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: str,
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """All slots of the provider on the given date, each with an `available` flag."""
    slots = await get_slots_for_date(session, provider_id, date_param)
    return AvailableSlotsResponse(
        provider_id=provider_id,
        date=date_param.isoformat(),
        slots=[_slot_info(s) for s in slots],
    )


@router.get("/{provider_id}/slots/range", response_model=SlotRangeResponse)
async def available_slots_range(
    provider_id: str,
    start: date = Query(...),
    days: int = Query(7, ge=1, le=MAX_RANGE_DAYS),
    session: AsyncSession = Depends(get_session),
) -> SlotRangeResponse:
    by_day = await get_slots_for_range(session, provider_id, start, days)
    return SlotRangeResponse(
        provider_id=provider_id,
        days={d.isoformat(): [_slot_info(s) for s in slots] for d, slots in by_day.items()},
    )
