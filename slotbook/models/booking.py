from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid4())


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Actor(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

# Backstop for the application-level overlap check: two live bookings can
# never share a start time for the same provider.
_ACTIVE_ONLY = text("status != 'canceled'")


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_provider_start_active",
            "provider_id",
            "start_time",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )
    id: str = Field(default_factory=_new_id, primary_key=True)
    provider_id: str = Field(foreign_key="providers.id", index=True)
    customer_name: str
    customer_email: str = Field(index=True)
    customer_phone: str | None = None
    comment: str | None = None
    # Wall-clock times in the service timezone; end_time is frozen at creation
    start_time: datetime = Field(index=True)
    end_time: datetime
    status: str = Field(default=BookingStatus.PENDING.value, index=True)
    confirmation_token: str = Field(unique=True)
    cancellation_token: str = Field(unique=True)
    confirmed_at: datetime | None = None
    canceled_at: datetime | None = None
    reminder_sent_at: datetime | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class CustomerInfo(SQLModel):
    name: str
    email: str
    phone: str | None = None
    comment: str | None = None


class BookingPublic(SQLModel):
    id: str
    provider_id: str
    customer_name: str
    start_time: datetime
    end_time: datetime
    status: str
    confirmed_at: datetime | None = None
    canceled_at: datetime | None = None


class BookingAdminPublic(BookingPublic):
    customer_email: str
    customer_phone: str | None = None
    comment: str | None = None
    reminder_sent_at: datetime | None = None
    created_at: datetime
