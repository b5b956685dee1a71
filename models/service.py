from models.db import db, utcnow

MODALITIES = ("US", "MRI")
VISIT_KINDS = ("BASELINE", "FOLLOWUP")

class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    modality = db.Column(db.String(10), nullable=False)      # US, MRI
    visit_kind = db.Column(db.String(20), nullable=False)    # BASELINE, FOLLOWUP

    # soft retirement; the other columns are frozen once slots reference the service
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    slots = db.relationship("Slot", back_populates="service", lazy="dynamic")

    __table_args__ = (
        db.UniqueConstraint("modality", "visit_kind", "name", name="uq_services_kind_name"),
        db.CheckConstraint("modality IN ('US', 'MRI')", name="ck_services_modality"),
        db.CheckConstraint("visit_kind IN ('BASELINE', 'FOLLOWUP')", name="ck_services_visit_kind"),
    )

    def sort_key(self):
        # baseline before follow-up, ultrasound before MRI
        return (VISIT_KINDS.index(self.visit_kind), MODALITIES.index(self.modality), self.name)
