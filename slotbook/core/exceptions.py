from fastapi import status


class BookingError(Exception):
    """Base for expected booking outcomes; mapped to a JSON error response."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "booking_error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class InvalidTime(BookingError):
    """Requested time is not bookable."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_time"


class SlotConflict(BookingError):
    """Slot is already taken."""

    status_code = status.HTTP_409_CONFLICT
    code = "slot_conflict"


class NotFound(BookingError):
    """Not found."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidToken(BookingError):
    """Invalid token."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "invalid_token"


class DeadlineExceeded(BookingError):
    """Cancellation deadline has passed."""

    status_code = status.HTTP_409_CONFLICT
    code = "deadline_exceeded"


class ConfigError(BookingError):
    """Provider settings are invalid."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "config_error"


class TransientStoreError(BookingError):
    """Booking store is temporarily unavailable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
