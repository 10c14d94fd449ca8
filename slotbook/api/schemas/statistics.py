from datetime import date as date_type

from pydantic import BaseModel

from slotbook.models.booking import BookingAdminPublic


class StatusCounts(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    canceled: int = 0


class DayStatistics(StatusCounts):
    date: date_type


class StatisticsResponse(BaseModel):
    period: str
    since: date_type
    days: list[DayStatistics]  # newest first


class DashboardResponse(BaseModel):
    today: list[BookingAdminPublic]
    upcoming: list[BookingAdminPublic]
    last_30_days: StatusCounts
