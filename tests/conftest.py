"""Shared fixtures: a fresh SQLite database per test, providers and a recording notifier."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest-slotbook.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("REMINDERS_ENABLED", "false")

from collections import Counter
from datetime import date, datetime

import pytest
import pytest_asyncio
from sqlmodel import SQLModel

import slotbook.models  # noqa: F401 - register tables
from slotbook.core.db import make_engine, make_session_maker
from slotbook.models.provider import Channel, Provider
from slotbook.services.booking_service import ProviderLocks

# 2030-01-07 is a Monday; NOW is the Tuesday before
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
NOW = datetime(2030, 1, 1, 8, 0)


def monday_settings(**overrides) -> dict:
    settings = {
        "slot_duration_minutes": 30,
        "buffer_minutes": 0,
        "working_hours": {"1": [["09:00", "12:00"]]},
        "cancellation_deadline_hours": 12,
        "reminders": {"enabled": True, "hours_before": 24, "channels": ["email"]},
    }
    settings.update(overrides)
    return settings


def at(d: date, hh_mm: str) -> datetime:
    hours, minutes = hh_mm.split(":")
    return datetime(d.year, d.month, d.day, int(hours), int(minutes))


class RecordingNotifier:
    """Notifier stub that counts calls per booking id."""

    def __init__(self, failing: set[Channel] | None = None):
        self.failing = failing or set()
        self.confirmations: list[tuple[str, str, str]] = []
        self.reminders: Counter = Counter()
        self.reminder_channels: dict[str, list[Channel]] = {}
        self.cancellations: list[str] = []

    async def send_confirmation_request(self, booking, provider, confirm_url, cancel_url):
        self.confirmations.append((booking.id, confirm_url, cancel_url))
        return True

    async def send_reminder(self, booking, provider, channels):
        self.reminders[booking.id] += 1
        channels = [c for c in channels if c != Channel.SMS or booking.customer_phone]
        self.reminder_channels[booking.id] = channels
        return {c: c not in self.failing for c in channels}

    async def send_cancellation_notice(self, booking, provider):
        self.cancellations.append(booking.id)
        return True


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'slotbook.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def locks() -> ProviderLocks:
    return ProviderLocks()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


async def add_provider(session_maker, settings: dict | None = None, **fields) -> str:
    async with session_maker() as s:
        provider = Provider(name=fields.pop("name", "Praxis Test"), settings=settings or monday_settings(), **fields)
        s.add(provider)
        await s.commit()
        return provider.id


@pytest_asyncio.fixture
async def provider_id(session_maker) -> str:
    return await add_provider(session_maker, contact_email="praxis@example.com")
