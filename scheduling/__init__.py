from .errors import (
    SchedulingError,
    SlotNotAvailable,
    DuplicateActiveBookingForService,
    BookingNotActive,
    SlotHasActiveBooking,
    SameSlot,
    SlotAlreadyExists,
    InvalidSlot,
    SlotNotFound,
    BookingNotFound,
    ServiceNotFound,
)
