"""
Booking ledger: create, cancel and reschedule bookings.

Every mutation is one transaction: the rows it depends on are locked (or,
on SQLite, the write lock is taken) before they are checked, and the commit
is the only point where the change becomes visible. Conflicts raised by the
store's partial unique indexes are translated to SchedulingError subclasses.
"""
import logging

from sqlalchemy.exc import IntegrityError, OperationalError

from models import db
from models.booking import (
    ACTIVE_PARTICIPANT_SERVICE_INDEX,
    ACTIVE_SEAT_INDEX,
    BOOKED,
    CANCELLED,
    Booking,
)
from models.service import Service
from models.slot import Slot
from scheduling.errors import (
    BookingNotActive,
    BookingNotFound,
    DuplicateActiveBookingForService,
    SameSlot,
    SchedulingError,
    SlotNotAvailable,
)
from scheduling.slots import claim_seat, lock_slot
from scheduling.transaction import lock_for_write

logger = logging.getLogger(__name__)

# column lists as they appear in SQLite's "UNIQUE constraint failed: ..." text
_PARTICIPANT_SERVICE_COLUMNS = "bookings.participant_id, bookings.service_id"
_SEAT_COLUMNS = "bookings.slot_id, bookings.seat"


def _constraint_name(exc: IntegrityError):
    diag = getattr(getattr(exc, "orig", None), "diag", None)
    return getattr(diag, "constraint_name", None)


def translate_integrity_error(exc: IntegrityError, **context) -> SchedulingError:
    """Map a unique-index violation on bookings to the invariant it protects."""
    name = _constraint_name(exc)
    text = str(getattr(exc, "orig", exc))

    if name == ACTIVE_PARTICIPANT_SERVICE_INDEX or ACTIVE_PARTICIPANT_SERVICE_INDEX in text \
            or _PARTICIPANT_SERVICE_COLUMNS in text:
        return DuplicateActiveBookingForService(**context)
    if name == ACTIVE_SEAT_INDEX or ACTIVE_SEAT_INDEX in text or _SEAT_COLUMNS in text:
        return SlotNotAvailable(**context)

    # foreign key / check failures: the slot vanished or changed under us
    logger.warning("Unrecognised integrity error on bookings: %s", text)
    return SlotNotAvailable(**context)


def _bookable_slot(slot_id: int, service_id: int, now):
    slot = lock_slot(slot_id)
    if not slot or slot.service_id != service_id:
        raise SlotNotAvailable(slot_id=slot_id)
    if not slot.service.active:
        raise SlotNotAvailable("Service is not open for booking.", slot_id=slot_id)
    if slot.starts_at <= now:
        raise SlotNotAvailable("Slot has already started.", slot_id=slot_id)
    return slot


def _lock_booking(booking_id: int, participant_id=None):
    booking = Booking.query.filter_by(id=booking_id).with_for_update().first()
    if not booking or (participant_id is not None and booking.participant_id != participant_id):
        raise BookingNotFound(booking_id=booking_id)
    return booking


def _commit(**context):
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc, **context)


def create_booking(participant_id: int, service_id: int, slot_id: int, now) -> Booking:
    try:
        lock_for_write()

        service = db.session.get(Service, service_id)
        if not service or not service.active:
            raise SlotNotAvailable("Service is not open for booking.", slot_id=slot_id)

        slot = _bookable_slot(slot_id, service_id, now)
        seat = claim_seat(slot)

        existing = (
            Booking.query
            .filter_by(participant_id=participant_id, service_id=service_id, status=BOOKED)
            .first()
        )
        if existing:
            raise DuplicateActiveBookingForService(service_id=service_id, booking_id=existing.id)

        booking = Booking(
            participant_id=participant_id,
            service_id=service_id,
            slot_id=slot.id,
            seat=seat,
            status=BOOKED,
            created_at=now,
        )
        db.session.add(booking)
        _commit(slot_id=slot_id, service_id=service_id)
    except SchedulingError:
        db.session.rollback()
        raise
    except OperationalError:
        # lock wait exceeded: another writer holds the slot
        db.session.rollback()
        raise SlotNotAvailable(slot_id=slot_id)

    logger.info("Booking %s created: participant=%s slot=%s seat=%s",
                booking.id, participant_id, slot_id, seat)
    return booking


def cancel_booking(booking_id: int, now, participant_id=None) -> Booking:
    try:
        lock_for_write()
        booking = _lock_booking(booking_id, participant_id)
        if booking.status != BOOKED:
            raise BookingNotActive(booking_id=booking_id)

        booking.status = CANCELLED
        booking.cancelled_at = now
        db.session.commit()
    except SchedulingError:
        db.session.rollback()
        raise
    except OperationalError:
        db.session.rollback()
        raise BookingNotActive("Booking is being modified, try again.", booking_id=booking_id)

    logger.info("Booking %s cancelled", booking_id)
    return booking


def reschedule_booking(booking_id: int, new_slot_id: int, now, participant_id=None) -> Booking:
    """
    Move an active booking to another slot of the same service.

    Claiming the new seat, switching slot_id and clearing reminder_sent_at
    commit together; on any failure the booking keeps its old slot.
    """
    try:
        lock_for_write()
        booking = _lock_booking(booking_id, participant_id)
        if booking.status != BOOKED:
            raise BookingNotActive(booking_id=booking_id)
        if booking.slot_id == new_slot_id:
            raise SameSlot(booking_id=booking_id, slot_id=new_slot_id)

        slot = _bookable_slot(new_slot_id, booking.service_id, now)
        seat = claim_seat(slot)

        old_slot_id = booking.slot_id
        booking.slot_id = slot.id
        booking.seat = seat
        booking.reminder_sent_at = None
        _commit(slot_id=new_slot_id, booking_id=booking_id)
    except SchedulingError:
        db.session.rollback()
        raise
    except OperationalError:
        db.session.rollback()
        raise SlotNotAvailable(slot_id=new_slot_id)

    logger.info("Booking %s moved from slot %s to slot %s", booking_id, old_slot_id, new_slot_id)
    return booking


def _booking_row(b: Booking, slot: Slot):
    return {
        "booking_id": b.id,
        "status": b.status,
        "service_id": b.service_id,
        "service_name": b.service.name,
        "modality": b.service.modality,
        "visit_kind": b.service.visit_kind,
        "slot_id": b.slot_id,
        "starts_at": slot.starts_at.isoformat() if slot else None,
        "ends_at": slot.ends_at.isoformat() if slot else None,
        "created_at": b.created_at.isoformat(),
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "reminder_sent_at": b.reminder_sent_at.isoformat() if b.reminder_sent_at else None,
    }


def bookings_for_participant(participant_id: int):
    rows = (
        Booking.query
        .filter_by(participant_id=participant_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )
    return [_booking_row(b, b.slot) for b in rows]


def list_bookings(status=None, limit=200):
    q = Booking.query
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()
    return [
        {**_booking_row(b, b.slot), "participant_id": b.participant_id}
        for b in rows
    ]
