from models import db
from models.service import Service

# the four study visits: ultrasound and MRI, before and after therapy
DEFAULT_SERVICES = [
    ("Ultrasound (baseline)", "US", "BASELINE"),
    ("MRI (baseline)", "MRI", "BASELINE"),
    ("Ultrasound (follow-up)", "US", "FOLLOWUP"),
    ("MRI (follow-up)", "MRI", "FOLLOWUP"),
]

def seed_services():
    existing = {(s.modality, s.visit_kind, s.name) for s in Service.query.all()}
    created = 0
    for name, modality, visit_kind in DEFAULT_SERVICES:
        if (modality, visit_kind, name) not in existing:
            db.session.add(Service(name=name, modality=modality, visit_kind=visit_kind))
            created += 1
    db.session.commit()
    return created
