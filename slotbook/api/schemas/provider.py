from pydantic import BaseModel

from slotbook.models.provider import ProviderSettings


class ProviderSettingsResponse(BaseModel):
    provider_id: str
    settings: ProviderSettings


class ReminderResult(BaseModel):
    booking_id: str
    channels: dict[str, bool]
