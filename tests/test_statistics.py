"""Tests for booking statistics and the dashboard summary."""

from datetime import date, datetime

import pytest
import pytest_asyncio

from slotbook.models.booking import Booking, BookingStatus, CustomerInfo
from slotbook.services import booking_store
from slotbook.services.booking_service import cancel_booking, create_admin_booking, create_booking
from slotbook.services.statistics import StatsPeriod, booking_statistics, dashboard

from tests.conftest import MONDAY, NOW, TUESDAY, add_provider, at

ANNA = CustomerInfo(name="Anna", email="anna@example.com")
LAST_SUMMER = datetime(2029, 6, 1, 10, 0)


@pytest_asyncio.fixture
async def history(session_maker, provider_id, locks):
    """Monday: pending 09:00, confirmed 10:00, canceled 11:00. Tuesday: confirmed 10:00. One booking last summer."""
    async with session_maker() as s:
        await create_booking(s, provider_id, ANNA, at(MONDAY, "09:00"), now=NOW, locks=locks)
        await create_admin_booking(s, provider_id, ANNA, at(MONDAY, "10:00"), now=NOW, locks=locks)
        canceled = await create_admin_booking(s, provider_id, ANNA, at(MONDAY, "11:00"), now=NOW, locks=locks)
        await cancel_booking(s, canceled.id, canceled.cancellation_token, now=NOW)
        await create_admin_booking(s, provider_id, ANNA, at(TUESDAY, "10:00"), now=NOW, locks=locks)
        await booking_store.insert_booking(
            s,
            Booking(
                provider_id=provider_id,
                customer_name="Anna",
                customer_email="anna@example.com",
                start_time=LAST_SUMMER,
                end_time=datetime(2029, 6, 1, 10, 30),
                status=BookingStatus.CONFIRMED.value,
                confirmation_token="old-c",
                cancellation_token="old-x",
            ),
        )
        await s.commit()
    return provider_id


class TestBookingStatistics:
    @pytest.mark.asyncio
    async def test_counts_per_day_newest_first(self, session, history):
        since, rows = await booking_statistics(session, history, StatsPeriod.WEEK, now=NOW)

        assert since == date(2029, 12, 25)
        assert rows == [
            {"date": TUESDAY, "total": 1, "pending": 0, "confirmed": 1, "canceled": 0},
            {"date": MONDAY, "total": 3, "pending": 1, "confirmed": 1, "canceled": 1},
        ]

    @pytest.mark.asyncio
    async def test_year_reaches_further_back(self, session, history):
        since, rows = await booking_statistics(session, history, StatsPeriod.YEAR, now=NOW)

        assert since == date(2029, 1, 1)
        assert rows[-1]["date"] == LAST_SUMMER.date()
        assert sum(r["total"] for r in rows) == 5

    @pytest.mark.asyncio
    async def test_other_provider_sees_nothing(self, session, history, session_maker):
        other = await add_provider(session_maker, name="Andere Praxis")
        assert (await booking_statistics(session, other, now=NOW))[1] == []


class TestDashboard:
    @pytest.mark.asyncio
    async def test_today_upcoming_and_totals(self, session, history):
        summary = await dashboard(session, history, now=at(MONDAY, "08:00"))

        assert [b.start_time for b in summary.today] == [at(MONDAY, h) for h in ("09:00", "10:00", "11:00")]
        assert [b.start_time for b in summary.upcoming] == [at(TUESDAY, "10:00")]
        assert summary.totals == {"total": 4, "pending": 1, "confirmed": 2, "canceled": 1}
