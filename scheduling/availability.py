from sqlalchemy import func

from models import db
from models.booking import Booking, BOOKED
from models.service import Service
from models.slot import Slot


def booked_count_subquery():
    return (
        db.session.query(Booking.slot_id.label("slot_id"), func.count(Booking.id).label("booked"))
        .filter(Booking.status == BOOKED)
        .group_by(Booking.slot_id)
        .subquery()
    )


def available_slots(service_id: int, now):
    """
    Open slots of an active service, soonest first.

    Counts and slots come from one SELECT so the answer is a single snapshot;
    a later booking attempt can still lose a race and must handle the conflict.
    """
    counts = booked_count_subquery()
    booked = func.coalesce(counts.c.booked, 0)

    return (
        Slot.query
        .join(Service, Service.id == Slot.service_id)
        .outerjoin(counts, counts.c.slot_id == Slot.id)
        .filter(
            Slot.service_id == service_id,
            Service.active.is_(True),
            Slot.starts_at > now,
            booked < Slot.capacity,
        )
        .order_by(Slot.starts_at.asc(), Slot.id.asc())
        .all()
    )


def booked_counts(slot_ids):
    if not slot_ids:
        return {}
    rows = (
        db.session.query(Booking.slot_id, func.count(Booking.id))
        .filter(Booking.slot_id.in_(slot_ids), Booking.status == BOOKED)
        .group_by(Booking.slot_id)
        .all()
    )
    return {slot_id: count for slot_id, count in rows}
