from models.db import db, utcnow

class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    starts_at = db.Column(db.DateTime, nullable=False, index=True)
    ends_at = db.Column(db.DateTime, nullable=False)

    # number of concurrent active bookings the slot accepts
    capacity = db.Column(db.Integer, nullable=False, default=1)

    created_by = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    service = db.relationship("Service", back_populates="slots")

    __table_args__ = (
        # Prevent duplicate slot times for same service
        db.UniqueConstraint("service_id", "starts_at", name="uq_slots_service_start"),
        db.CheckConstraint("capacity >= 1", name="ck_slots_capacity_positive"),
        db.CheckConstraint("ends_at > starts_at", name="ck_slots_time_order"),
    )
