from datetime import date as date_type, datetime, time

from pydantic import BaseModel, EmailStr, Field, field_validator

from slotbook.services.timegrid import parse_clock


class SlotInfo(BaseModel):
    start: datetime
    end: datetime
    available: bool


class AvailableSlotsResponse(BaseModel):
    provider_id: str
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]


class SlotRangeResponse(BaseModel):
    provider_id: str
    days: dict[str, list[SlotInfo]]  # YYYY-MM-DD -> slots


class _CustomerFields(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=32)
    date: date_type
    time: str = Field(pattern=r"^\d{2}:\d{2}$")  # HH:MM
    comment: str | None = Field(default=None, max_length=2000)

    @field_validator("time")
    @classmethod
    def _valid_clock(cls, value: str) -> str:
        if parse_clock(value) >= 24 * 60:
            raise ValueError("time must be before 24:00")
        return value

    @property
    def start_time(self) -> datetime:
        minutes = parse_clock(self.time)
        return datetime.combine(self.date, time(minutes // 60, minutes % 60))


class BookingRequest(_CustomerFields):
    provider_id: str


class AdminBookingRequest(_CustomerFields):
    pass


class BookingCreatedResponse(BaseModel):
    id: str
    status: str
    start_time: datetime
    end_time: datetime


class TokenBody(BaseModel):
    token: str


class AdminCancelBody(BaseModel):
    notify: bool = True
