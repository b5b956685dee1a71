import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from models import db
from models.booking import Booking, BOOKED, CANCELLED
from models.participant import Participant
from models.service import Service
from models.slot import Slot
from scheduling.availability import available_slots, booked_counts
from scheduling.errors import (
    InvalidSlot,
    ServiceNotFound,
    SlotAlreadyExists,
    SlotHasActiveBooking,
    SlotNotAvailable,
    SlotNotFound,
)
from scheduling.transaction import lock_for_write

logger = logging.getLogger(__name__)


def slot_duration():
    return timedelta(minutes=current_app.config.get("SLOT_DURATION_MINUTES", 60))


def lock_slot(slot_id: int):
    return Slot.query.filter_by(id=slot_id).with_for_update().first()


def list_available(service_id: int, now):
    return available_slots(service_id, now)


def claim_seat(slot: Slot) -> int:
    """
    Lowest free seat of `slot`, or SlotNotAvailable when every seat is held.

    Must run inside the caller's write transaction. Two writers that pick the
    same seat collide on uq_bookings_active_seat, so the store has the last word.
    """
    taken = {
        seat for (seat,) in
        db.session.query(Booking.seat).filter(Booking.slot_id == slot.id, Booking.status == BOOKED).all()
    }
    for seat in range(slot.capacity):
        if seat not in taken:
            return seat
    raise SlotNotAvailable(slot_id=slot.id)


def create_slot(service_id: int, starts_at, capacity: int = 1, created_by=None) -> Slot:
    if capacity is None or int(capacity) < 1:
        raise InvalidSlot("capacity must be at least 1")

    service = db.session.get(Service, service_id)
    if not service or not service.active:
        raise ServiceNotFound(service_id=service_id)

    slot = Slot(
        service_id=service.id,
        starts_at=starts_at,
        ends_at=starts_at + slot_duration(),
        capacity=int(capacity),
        created_by=created_by,
    )
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotAlreadyExists(service_id=service_id, starts_at=starts_at.isoformat())

    logger.info("Created slot %s for service %s at %s", slot.id, service.id, slot.starts_at.isoformat())
    return slot


def delete_slot(slot_id: int) -> None:
    """
    Delete a slot that no active booking references.

    The active-booking check and the delete share one transaction with the
    slot row locked; a booking inserted concurrently trips the foreign key.
    Cancelled bookings of the slot are removed with it.
    """
    try:
        lock_for_write()
        slot = lock_slot(slot_id)
        if not slot:
            raise SlotNotFound(slot_id=slot_id)

        active = Booking.query.filter_by(slot_id=slot.id, status=BOOKED).count()
        if active:
            raise SlotHasActiveBooking(slot_id=slot.id, active_bookings=active)

        Booking.query.filter_by(slot_id=slot.id, status=CANCELLED).delete(synchronize_session=False)
        db.session.delete(slot)
        db.session.commit()
    except (SlotNotFound, SlotHasActiveBooking):
        db.session.rollback()
        raise
    except (IntegrityError, OperationalError):
        db.session.rollback()
        raise SlotHasActiveBooking(slot_id=slot_id)

    logger.info("Deleted slot %s", slot_id)


def slot_overview():
    """All slots with their occupancy, for the admin view."""
    slots = (
        Slot.query
        .join(Service, Service.id == Slot.service_id)
        .order_by(Slot.starts_at.asc(), Slot.id.asc())
        .all()
    )
    slot_ids = [s.id for s in slots]
    counts = booked_counts(slot_ids)

    holders = {}
    if slot_ids:
        rows = (
            db.session.query(Booking.slot_id, Participant.email)
            .join(Participant, Participant.id == Booking.participant_id)
            .filter(Booking.slot_id.in_(slot_ids), Booking.status == BOOKED)
            .order_by(Booking.seat.asc())
            .all()
        )
        for slot_id, email in rows:
            holders.setdefault(slot_id, []).append(email)

    return [
        {
            "slot_id": s.id,
            "service_id": s.service_id,
            "service_name": s.service.name,
            "modality": s.service.modality,
            "visit_kind": s.service.visit_kind,
            "starts_at": s.starts_at.isoformat(),
            "ends_at": s.ends_at.isoformat(),
            "capacity": s.capacity,
            "booked_count": counts.get(s.id, 0),
            "booked": counts.get(s.id, 0) > 0,
            "participant_emails": holders.get(s.id, []),
        }
        for s in slots
    ]
