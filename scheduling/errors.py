"""
Outcomes of scheduling operations that the caller is expected to act on
(pick another slot, refresh the view). None of these are system failures.
"""


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"
    http_status = 400
    message = "Scheduling request could not be completed"

    def __init__(self, message=None, **context):
        super().__init__(message or self.message)
        self.context = context

    def to_dict(self):
        return {"error": self.code, "message": str(self), **self.context}


class SlotNotAvailable(SchedulingError):
    code = "SLOT_NOT_AVAILABLE"
    http_status = 409
    message = "Slot is no longer available. Refresh availability and pick another slot."


class DuplicateActiveBookingForService(SchedulingError):
    code = "DUPLICATE_ACTIVE_BOOKING_FOR_SERVICE"
    http_status = 409
    message = "You already hold an active booking for this service."


class BookingNotActive(SchedulingError):
    code = "BOOKING_NOT_ACTIVE"
    http_status = 409
    message = "Booking is not active."


class SlotHasActiveBooking(SchedulingError):
    code = "SLOT_HAS_ACTIVE_BOOKING"
    http_status = 409
    message = "Slot cannot be deleted while an active booking references it."


class SameSlot(SchedulingError):
    code = "SAME_SLOT"
    http_status = 400
    message = "Booking already holds this slot."


class SlotAlreadyExists(SchedulingError):
    code = "SLOT_ALREADY_EXISTS"
    http_status = 409
    message = "Slot already exists for that service and time."


class InvalidSlot(SchedulingError):
    code = "INVALID_SLOT"
    http_status = 400
    message = "Slot definition is invalid."


class SlotNotFound(SchedulingError):
    code = "SLOT_NOT_FOUND"
    http_status = 404
    message = "Slot not found."


class BookingNotFound(SchedulingError):
    code = "BOOKING_NOT_FOUND"
    http_status = 404
    message = "Booking not found."


class ServiceNotFound(SchedulingError):
    code = "SERVICE_NOT_FOUND"
    http_status = 404
    message = "Service not found."
