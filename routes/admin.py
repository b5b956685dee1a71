from datetime import timezone, datetime

from flask import Blueprint, current_app, jsonify, g, request

from models import db
from models.service import Service
from routes.services import service_json
from scheduling.errors import ServiceNotFound
from scheduling.ledger import list_bookings
from scheduling.slots import create_slot as store_create_slot
from scheduling.slots import delete_slot as store_delete_slot
from scheduling.slots import slot_overview
from security.rbac import require_admin
from utils.audit import log_event

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def parse_iso(dt_str: str):
    # Expect ISO format like "2026-01-20T18:00:00"; aware values are stored as naive UTC
    dt = datetime.fromisoformat(dt_str)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


# ---------- ADMIN: slot authoring ----------
@admin_bp.post("/slots")
@require_admin
def create_slot():
    data = request.get_json(silent=True) or {}
    service_id = data.get("service_id")
    starts_at = data.get("starts_at")
    capacity = data.get("capacity", current_app.config.get("DEFAULT_SLOT_CAPACITY", 1))

    if not service_id or not starts_at:
        return jsonify(error="service_id and starts_at are required"), 400

    try:
        st = parse_iso(starts_at)
    except (TypeError, ValueError):
        return jsonify(error="Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00"), 400

    try:
        capacity = int(capacity)
        service_id = int(service_id)
    except (TypeError, ValueError):
        return jsonify(error="service_id and capacity must be integers"), 400

    slot = store_create_slot(service_id, st, capacity=capacity, created_by=g.participant.id)

    log_event("SLOT_CREATE", participant_id=g.participant.id, entity="slot", entity_id=slot.id)
    return jsonify(
        id=slot.id,
        service_id=slot.service_id,
        starts_at=slot.starts_at.isoformat(),
        ends_at=slot.ends_at.isoformat(),
        capacity=slot.capacity,
    ), 201


@admin_bp.delete("/slots/<int:slot_id>")
@require_admin
def delete_slot(slot_id: int):
    store_delete_slot(slot_id)

    log_event("SLOT_DELETE", participant_id=g.participant.id, entity="slot", entity_id=slot_id)
    return jsonify(message="Slot deleted"), 200


@admin_bp.get("/slots")
@require_admin
def list_slots():
    rows = slot_overview()
    if request.args.get("booked") == "true":
        rows = [r for r in rows if r["booked"]]
    return jsonify(rows), 200


# ---------- ADMIN: list all bookings ----------
@admin_bp.get("/bookings")
@require_admin
def list_all_bookings():
    status = request.args.get("status")  # BOOKED/CANCELLED
    return jsonify(list_bookings(status=status)), 200


# ---------- ADMIN: retire / reopen a service ----------
@admin_bp.post("/services/<int:service_id>/active")
@require_admin
def set_service_active(service_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("active"), bool):
        return jsonify(error="active (boolean) is required"), 400

    service = db.session.get(Service, service_id)
    if not service:
        raise ServiceNotFound(service_id=service_id)

    service.active = data["active"]
    db.session.commit()

    log_event("SERVICE_ACTIVE_SET", participant_id=g.participant.id, entity="service",
              entity_id=service.id, metadata={"active": service.active})
    return jsonify(service_json(service)), 200
