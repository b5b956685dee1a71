from flask import Blueprint, request, jsonify, g

from models.db import utcnow
from scheduling.errors import DuplicateActiveBookingForService, SlotNotAvailable
from scheduling.ledger import (
    bookings_for_participant,
    cancel_booking as ledger_cancel,
    create_booking as ledger_create,
    reschedule_booking as ledger_reschedule,
)
from utils.auth_context import login_required
from utils.audit import log_event

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _int_field(data, name):
    value = data.get(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def booking_json(b):
    return {
        "id": b.id,
        "status": b.status,
        "service_id": b.service_id,
        "slot_id": b.slot_id,
        "created_at": b.created_at.isoformat(),
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "reminder_sent_at": b.reminder_sent_at.isoformat() if b.reminder_sent_at else None,
    }


# ---------- PARTICIPANTS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    service_id = _int_field(data, "service_id")
    slot_id = _int_field(data, "slot_id")
    if not service_id or not slot_id:
        return jsonify(error="service_id and slot_id are required"), 400

    try:
        booking = ledger_create(g.participant.id, service_id, slot_id, utcnow())
    except (SlotNotAvailable, DuplicateActiveBookingForService) as exc:
        log_event("BOOKING_FAIL_" + exc.code, participant_id=g.participant.id, entity="slot", entity_id=slot_id)
        raise

    log_event("BOOKING_CREATE", participant_id=g.participant.id, entity="booking",
              entity_id=booking.id, metadata={"slot_id": slot_id})
    return jsonify(booking_json(booking)), 201


# ---------- PARTICIPANTS: view my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    return jsonify(bookings_for_participant(g.participant.id)), 200


@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    booking = ledger_cancel(booking_id, utcnow(), participant_id=g.participant.id)

    log_event("BOOKING_CANCEL", participant_id=g.participant.id, entity="booking", entity_id=booking.id)
    return jsonify(booking_json(booking)), 200


# ---------- PARTICIPANTS: move booking (atomic) ----------
@booking_bp.post("/<int:booking_id>/reschedule")
@login_required
def reschedule_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    slot_id = _int_field(data, "slot_id")
    if not slot_id:
        return jsonify(error="slot_id required"), 400

    booking = ledger_reschedule(booking_id, slot_id, utcnow(), participant_id=g.participant.id)

    log_event("BOOKING_RESCHEDULE", participant_id=g.participant.id, entity="booking",
              entity_id=booking.id, metadata={"slot_id": slot_id})
    return jsonify(booking_json(booking)), 200
