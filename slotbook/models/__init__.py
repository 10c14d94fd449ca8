from slotbook.models.provider import Provider, ProviderPublic, ProviderSettings, ReminderConfig, TimeRange
from slotbook.models.booking import (
    Actor,
    Booking,
    BookingAdminPublic,
    BookingPublic,
    BookingStatus,
    CustomerInfo,
)

__all__ = [
    "Provider",
    "ProviderPublic",
    "ProviderSettings",
    "ReminderConfig",
    "TimeRange",
    "Actor",
    "Booking",
    "BookingAdminPublic",
    "BookingPublic",
    "BookingStatus",
    "CustomerInfo",
]
