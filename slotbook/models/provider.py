from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, Field as PydanticField, ValidationError, field_validator, model_serializer, model_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from slotbook.core.exceptions import ConfigError
from slotbook.services.timegrid import MINUTES_PER_DAY, format_clock, parse_clock


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid4())


class Channel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class TimeRange(BaseModel):
    """A [start, end) range in minutes since midnight. Stored as ["HH:MM", "HH:MM"]."""

    start: int
    end: int

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, value):
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("time range must be a [start, end] pair")
            value = {"start": value[0], "end": value[1]}
        if isinstance(value, dict):
            value = {k: parse_clock(v) if isinstance(v, str) else v for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "TimeRange":
        if not 0 <= self.start < self.end <= MINUTES_PER_DAY:
            raise ValueError(f"invalid time range {self.start}-{self.end}: need 0 <= start < end <= 24:00")
        return self

    @model_serializer
    def _to_pair(self) -> list[str]:
        return [format_clock(self.start), format_clock(self.end)]

    def __str__(self) -> str:
        return f"{format_clock(self.start)}-{format_clock(self.end)}"


def _sorted_disjoint(ranges: list[TimeRange], what: str) -> list[TimeRange]:
    ordered = sorted(ranges, key=lambda r: r.start)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise ValueError(f"{what}: ranges {prev} and {cur} overlap")
    return ordered


def _check_weekdays(value: dict[int, list[TimeRange]]) -> None:
    for weekday in value:
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday must be 0 (Sunday) .. 6 (Saturday), got {weekday}")


class ReminderConfig(BaseModel):
    enabled: bool = True
    hours_before: int = PydanticField(default=24, ge=1, le=168)
    channels: set[Channel] = PydanticField(
        default_factory=lambda: {Channel.EMAIL},
        validation_alias=AliasChoices("channels", "via"),
    )


class ProviderSettings(BaseModel):
    slot_duration_minutes: int = PydanticField(default=30, gt=0, le=MINUTES_PER_DAY)
    buffer_minutes: int = PydanticField(default=0, ge=0)
    # 0 = Sunday .. 6 = Saturday
    working_hours: dict[int, list[TimeRange]] = PydanticField(default_factory=dict)
    breaks: list[TimeRange] = PydanticField(default_factory=list)
    weekday_breaks: dict[int, list[TimeRange]] = PydanticField(default_factory=dict)
    cancellation_deadline_hours: int = PydanticField(default=12, ge=0)
    reminders: ReminderConfig = PydanticField(default_factory=ReminderConfig)

    @field_validator("working_hours")
    @classmethod
    def _working_hours_disjoint(cls, value: dict[int, list[TimeRange]]) -> dict[int, list[TimeRange]]:
        _check_weekdays(value)
        return {day: _sorted_disjoint(ranges, f"working hours of weekday {day}") for day, ranges in value.items()}

    @field_validator("weekday_breaks")
    @classmethod
    def _weekday_breaks_valid(cls, value: dict[int, list[TimeRange]]) -> dict[int, list[TimeRange]]:
        _check_weekdays(value)
        return value

    def ranges_for(self, weekday: int) -> list[TimeRange]:
        return self.working_hours.get(weekday, [])

    def breaks_for(self, weekday: int) -> list[TimeRange]:
        return [*self.breaks, *self.weekday_breaks.get(weekday, [])]


DEFAULT_SETTINGS: dict = {
    "slot_duration_minutes": 30,
    "buffer_minutes": 0,
    "working_hours": {
        1: [["09:00", "12:00"], ["13:00", "17:00"]],
        2: [["09:00", "12:00"], ["13:00", "17:00"]],
        3: [["09:00", "12:00"], ["13:00", "17:00"]],
        4: [["09:00", "12:00"], ["13:00", "17:00"]],
        5: [["09:00", "12:00"]],
    },
    "reminders": {"enabled": True, "hours_before": 24, "channels": ["email"]},
    "cancellation_deadline_hours": 12,
}


def parse_settings(raw: dict | None) -> ProviderSettings:
    """Validate a stored settings document; malformed settings raise ConfigError."""
    try:
        return ProviderSettings.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid provider settings: {e.errors(include_url=False)}") from e


class Provider(SQLModel, table=True):
    __tablename__ = "providers"
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    subdomain: str | None = Field(default=None, unique=True, index=True)
    contact_email: str | None = None
    settings: dict = Field(
        default_factory=lambda: ProviderSettings.model_validate(DEFAULT_SETTINGS).model_dump(mode="json"),
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=_utc_naive_now)

    def parsed_settings(self) -> ProviderSettings:
        return parse_settings(self.settings)


class ProviderPublic(SQLModel):
    id: str
    name: str
    subdomain: str | None = None
    slot_duration_minutes: int
    cancellation_deadline_hours: int
