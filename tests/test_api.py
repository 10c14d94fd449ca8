"""HTTP tests against the FastAPI app with an in-process ASGI transport."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from slotbook.core.security import create_admin_token
from slotbook.main import create_app

from tests.conftest import MONDAY, TUESDAY, add_provider

BASE = "/api/v1"


def booking_body(provider_id: str, time: str = "10:00", **overrides) -> dict:
    body = {
        "provider_id": provider_id,
        "name": "Anna Muster",
        "email": "anna@example.com",
        "phone": "+4915112345678",
        "date": MONDAY.isoformat(),
        "time": time,
        "comment": "Erstbesuch",
    }
    body.update(overrides)
    return body


@pytest_asyncio.fixture
async def client(session_maker, notifier):
    app = create_app(session_maker=session_maker, notifier=notifier, run_reminders=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers(provider_id) -> dict:
    return {"Authorization": f"Bearer {create_admin_token(provider_id)}"}


class TestHealthAndProvider:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_provider_profile(self, client, provider_id):
        response = await client.get(f"{BASE}/providers/{provider_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Praxis Test"
        assert data["slot_duration_minutes"] == 30
        assert "settings" not in data

    @pytest.mark.asyncio
    async def test_unknown_provider(self, client):
        response = await client.get(f"{BASE}/providers/missing/slots", params={"date": MONDAY.isoformat()})
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestSlotsEndpoints:
    @pytest.mark.asyncio
    async def test_slots_for_day(self, client, provider_id):
        response = await client.get(f"{BASE}/providers/{provider_id}/slots", params={"date": MONDAY.isoformat()})
        assert response.status_code == 200
        data = response.json()
        assert data["date"] == "2030-01-07"
        assert [s["start"] for s in data["slots"]][:2] == ["2030-01-07T09:00:00", "2030-01-07T09:30:00"]
        assert len(data["slots"]) == 6
        assert all(s["available"] for s in data["slots"])

    @pytest.mark.asyncio
    async def test_slots_for_range(self, client, provider_id):
        response = await client.get(
            f"{BASE}/providers/{provider_id}/slots/range", params={"start": MONDAY.isoformat(), "days": 2}
        )
        assert response.status_code == 200
        days = response.json()["days"]
        assert list(days) == [MONDAY.isoformat(), TUESDAY.isoformat()]
        assert days[TUESDAY.isoformat()] == []

    @pytest.mark.asyncio
    async def test_range_too_long(self, client, provider_id):
        response = await client.get(
            f"{BASE}/providers/{provider_id}/slots/range", params={"start": MONDAY.isoformat(), "days": 60}
        )
        assert response.status_code == 422


class TestPublicBookingFlow:
    @pytest.mark.asyncio
    async def test_request_confirm_cancel(self, client, provider_id, notifier):
        created = await client.post(f"{BASE}/bookings", json=booking_body(provider_id))
        assert created.status_code == 201
        booking = created.json()
        assert booking["status"] == "pending"
        assert booking["end_time"] == "2030-01-07T10:30:00"

        # Confirmation mail carries both links
        assert len(notifier.confirmations) == 1
        booking_id, confirm_url, cancel_url = notifier.confirmations[0]
        assert booking_id == booking["id"]
        confirm_token = confirm_url.split("token=")[1]
        cancel_token = cancel_url.split("token=")[1]

        slots = await client.get(f"{BASE}/providers/{provider_id}/slots", params={"date": MONDAY.isoformat()})
        taken = [s["start"] for s in slots.json()["slots"] if not s["available"]]
        assert taken == ["2030-01-07T10:00:00"]

        confirmed = await client.post(f"{BASE}/bookings/{booking_id}/confirm", json={"token": confirm_token})
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        details = await client.get(f"{BASE}/bookings/{booking_id}", params={"token": cancel_token})
        assert details.status_code == 200
        assert details.json()["status"] == "confirmed"

        canceled = await client.delete(f"{BASE}/bookings/{booking_id}", params={"token": cancel_token})
        assert canceled.status_code == 200
        assert canceled.json()["status"] == "canceled"
        assert notifier.cancellations == [booking_id]

        # Repeating the cancel is harmless and does not notify again
        again = await client.delete(f"{BASE}/bookings/{booking_id}", params={"token": cancel_token})
        assert again.status_code == 200
        assert notifier.cancellations == [booking_id]

    @pytest.mark.asyncio
    async def test_double_booking_conflicts(self, client, provider_id):
        first = await client.post(f"{BASE}/bookings", json=booking_body(provider_id))
        assert first.status_code == 201
        second = await client.post(f"{BASE}/bookings", json=booking_body(provider_id, email="ben@example.com"))
        assert second.status_code == 409
        assert second.json()["code"] == "slot_conflict"

    @pytest.mark.asyncio
    async def test_off_grid_time(self, client, provider_id):
        response = await client.post(f"{BASE}/bookings", json=booking_body(provider_id, time="10:10"))
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_time"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"email": "not-an-email"}, {"time": "25:00"}, {"time": "24:00"}, {"time": "9:00"}, {"name": ""}],
    )
    async def test_invalid_payload(self, client, provider_id, overrides):
        response = await client.post(f"{BASE}/bookings", json=booking_body(provider_id, **overrides))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_wrong_tokens(self, client, provider_id, notifier):
        created = await client.post(f"{BASE}/bookings", json=booking_body(provider_id))
        booking_id = created.json()["id"]

        confirm = await client.post(f"{BASE}/bookings/{booking_id}/confirm", json={"token": "wrong"})
        assert confirm.status_code == 403
        assert confirm.json()["code"] == "invalid_token"

        cancel = await client.delete(f"{BASE}/bookings/{booking_id}", params={"token": "wrong"})
        assert cancel.status_code == 403
        assert notifier.cancellations == []


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get(f"{BASE}/admin/bookings")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_rejects_bad_token(self, client):
        response = await client.get(f"{BASE}/admin/bookings", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_list_remind_cancel(self, client, admin_headers, notifier):
        body = booking_body("ignored", time="18:15")
        body.pop("provider_id")
        created = await client.post(f"{BASE}/admin/bookings", json=body, headers=admin_headers)
        assert created.status_code == 201
        booking = created.json()
        assert booking["status"] == "confirmed"
        assert booking["customer_email"] == "anna@example.com"

        listed = await client.get(
            f"{BASE}/admin/bookings",
            params={"start": MONDAY.isoformat(), "end": MONDAY.isoformat(), "status": "confirmed"},
            headers=admin_headers,
        )
        assert listed.status_code == 200
        assert [b["id"] for b in listed.json()] == [booking["id"]]

        reminded = await client.post(f"{BASE}/admin/bookings/{booking['id']}/remind", headers=admin_headers)
        assert reminded.status_code == 200
        assert reminded.json()["channels"] == {"email": True}
        assert notifier.reminders[booking["id"]] == 1

        canceled = await client.post(
            f"{BASE}/admin/bookings/{booking['id']}/cancel", json={"notify": False}, headers=admin_headers
        )
        assert canceled.status_code == 200
        assert canceled.json()["status"] == "canceled"
        assert notifier.cancellations == []

    @pytest.mark.asyncio
    async def test_admin_cancel_notifies_by_default(self, client, provider_id, admin_headers, notifier):
        created = await client.post(f"{BASE}/bookings", json=booking_body(provider_id))
        booking_id = created.json()["id"]

        canceled = await client.post(f"{BASE}/admin/bookings/{booking_id}/cancel", headers=admin_headers)
        assert canceled.status_code == 200
        assert notifier.cancellations == [booking_id]

    @pytest.mark.asyncio
    async def test_other_provider_cannot_cancel(self, client, provider_id, session_maker):
        created = await client.post(f"{BASE}/bookings", json=booking_body(provider_id))
        other = await add_provider(session_maker, name="Andere Praxis")
        headers = {"Authorization": f"Bearer {create_admin_token(other)}"}

        response = await client.post(f"{BASE}/admin/bookings/{created.json()['id']}/cancel", headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, client, admin_headers, provider_id):
        current = await client.get(f"{BASE}/admin/settings", headers=admin_headers)
        assert current.status_code == 200
        settings = current.json()["settings"]
        assert settings["working_hours"] == {"1": [["09:00", "12:00"]]}

        settings["slot_duration_minutes"] = 60
        settings["working_hours"] = {"2": [["08:00", "10:00"]]}
        updated = await client.put(f"{BASE}/admin/settings", json=settings, headers=admin_headers)
        assert updated.status_code == 200

        slots = await client.get(f"{BASE}/providers/{provider_id}/slots", params={"date": TUESDAY.isoformat()})
        assert [s["start"] for s in slots.json()["slots"]] == ["2030-01-08T08:00:00", "2030-01-08T09:00:00"]

    @pytest.mark.asyncio
    async def test_invalid_settings_rejected(self, client, admin_headers):
        bad = {"working_hours": {"1": [["09:00", "12:00"], ["11:00", "13:00"]]}}
        response = await client.put(f"{BASE}/admin/settings", json=bad, headers=admin_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_statistics_and_dashboard(self, client, admin_headers, provider_id):
        await client.post(f"{BASE}/bookings", json=booking_body(provider_id, time="09:00"))
        await client.post(f"{BASE}/bookings", json=booking_body(provider_id, time="10:00"))

        stats = await client.get(f"{BASE}/admin/statistics", params={"period": "week"}, headers=admin_headers)
        assert stats.status_code == 200
        data = stats.json()
        assert data["period"] == "week"
        assert data["days"] == [
            {"date": MONDAY.isoformat(), "total": 2, "pending": 2, "confirmed": 0, "canceled": 0}
        ]

        bad_period = await client.get(f"{BASE}/admin/statistics", params={"period": "decade"}, headers=admin_headers)
        assert bad_period.status_code == 422

        board = await client.get(f"{BASE}/admin/dashboard", headers=admin_headers)
        assert board.status_code == 200
        assert set(board.json()) == {"today", "upcoming", "last_30_days"}

    @pytest.mark.asyncio
    async def test_statistics_requires_token(self, client):
        response = await client.get(f"{BASE}/admin/statistics")
        assert response.status_code == 401
