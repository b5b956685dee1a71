from sqlalchemy import text

from models.db import db, utcnow

BOOKED = "BOOKED"
CANCELLED = "CANCELLED"

ACTIVE_SEAT_INDEX = "uq_bookings_active_seat"
ACTIVE_PARTICIPANT_SERVICE_INDEX = "uq_bookings_active_participant_service"

_active = text("status = 'BOOKED'")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    participant_id = db.Column(db.Integer, db.ForeignKey("participants.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)

    # which of the slot's `capacity` places this booking holds (0-based)
    seat = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=BOOKED)
    # status values: BOOKED, CANCELLED

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    # null means no reminder has gone out for the current slot assignment
    reminder_sent_at = db.Column(db.DateTime, nullable=True)

    participant = db.relationship("Participant", back_populates="bookings")
    service = db.relationship("Service")
    slot = db.relationship("Slot")

    __table_args__ = (
        # Hard business-rules, scoped to active rows: a seat is held once, and a
        # participant holds one active booking per service
        db.Index(
            ACTIVE_SEAT_INDEX, "slot_id", "seat",
            unique=True, postgresql_where=_active, sqlite_where=_active,
        ),
        db.Index(
            ACTIVE_PARTICIPANT_SERVICE_INDEX, "participant_id", "service_id",
            unique=True, postgresql_where=_active, sqlite_where=_active,
        ),
        db.CheckConstraint("status IN ('BOOKED', 'CANCELLED')", name="ck_bookings_status"),
        db.CheckConstraint("seat >= 0", name="ck_bookings_seat_non_negative"),
    )

    @property
    def is_active(self):
        return self.status == BOOKED
