# tenantbook/errors.py
"""Named business-rule outcomes of the scheduling core.

Every failure a caller can branch on is a ``BookingError`` with a stable
``code``; the HTTP layer turns them into ``{"code", "detail"}`` responses.
"""

from typing import Optional


class BookingError(Exception):
    """Base exception for scheduling rule violations."""

    code = "BOOKING_ERROR"
    status_code = 400
    default_message = "Booking rule violated"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(BookingError):
    code = "VALIDATION_ERROR"
    status_code = 422
    default_message = "Invalid request"


class NotInBusiness(BookingError):
    code = "NOT_IN_BUSINESS"
    status_code = 400
    default_message = "Client or worker does not belong to this business"


class MaxConfirmedReached(BookingError):
    code = "MAX_CONFIRMED_REACHED"
    status_code = 409
    default_message = "Client already has the maximum number of confirmed appointments"


class SlotTaken(BookingError):
    code = "SLOT_TAKEN"
    status_code = 409
    default_message = "The requested time slot is no longer available"


class OnlyConfirmedCanBeCanceled(BookingError):
    code = "ONLY_CONFIRMED_CAN_BE_CANCELED"
    status_code = 409
    default_message = "Only confirmed appointments can be canceled"


class CannotCancelWithinCutoff(BookingError):
    code = "CANNOT_CANCEL_WITHIN_24H"
    status_code = 409
    default_message = "Appointments cannot be canceled this close to their start"


class NotFound(BookingError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class Forbidden(BookingError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class AlreadyExists(BookingError):
    code = "ALREADY_EXISTS"
    status_code = 409
    default_message = "Already exists"


class PushFailed(BookingError):
    code = "PUSH_FAILED"
    status_code = 400
    default_message = "Push send failed"
