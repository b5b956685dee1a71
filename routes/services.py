from flask import Blueprint, jsonify

from models import db
from models.db import utcnow
from models.service import Service
from scheduling.errors import ServiceNotFound
from scheduling.slots import list_available
from utils.auth_context import login_required

services_bp = Blueprint("services", __name__, url_prefix="/services")


def service_json(s: Service):
    return {
        "id": s.id,
        "name": s.name,
        "modality": s.modality,
        "visit_kind": s.visit_kind,
        "active": s.active,
    }


@services_bp.get("")
@login_required
def list_services():
    services = sorted(Service.query.filter_by(active=True).all(), key=Service.sort_key)
    return jsonify([service_json(s) for s in services]), 200


@services_bp.get("/<int:service_id>/slots")
@login_required
def available_slots(service_id: int):
    service = db.session.get(Service, service_id)
    if not service or not service.active:
        raise ServiceNotFound(service_id=service_id)

    slots = list_available(service_id, utcnow())
    return jsonify([
        {
            "slot_id": s.id,
            "starts_at": s.starts_at.isoformat(),
            "ends_at": s.ends_at.isoformat(),
        }
        for s in slots
    ]), 200
