"""
Reminder dispatcher.

Sends one reminder per (booking, slot assignment) for active bookings whose
slot starts inside the lookahead window. The mark-sent write is conditioned on
the slot id the reminder was computed for, so a reschedule that lands between
send and mark leaves the booking eligible again, and overlapping runs cannot
mark the same assignment twice.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta, timezone
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError, OperationalError

from models import db
from models.booking import Booking, BOOKED
from models.participant import Participant
from models.service import Service
from models.slot import Slot
from utils.audit import log_event

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"
STALE = "stale"
SKIPPED = "skipped"

# bookings already reported as unresolved by this process
_reported_unresolved = set()


@dataclass
class ReminderCandidate:
    booking_id: int
    slot_id: int
    participant_id: int
    starts_at: object
    service_name: str
    email: str


@dataclass
class DispatchReport:
    sent: int = 0
    failed: int = 0
    stale: int = 0
    skipped: int = 0
    details: list = field(default_factory=list)

    def record(self, outcome, candidate_or_id, error=None):
        setattr(self, outcome, getattr(self, outcome) + 1)
        booking_id = getattr(candidate_or_id, "booking_id", candidate_or_id)
        entry = {"booking_id": booking_id, "outcome": outcome}
        if error:
            entry["error"] = error
        self.details.append(entry)

    def to_dict(self):
        return {
            "ok": True,
            "sent": self.sent,
            "failed": self.failed,
            "stale": self.stale,
            "skipped": self.skipped,
            "details": self.details,
        }


def _lookahead():
    return timedelta(hours=current_app.config.get("REMINDER_LOOKAHEAD_HOURS", 24))


def format_start(starts_at, tz_name: str) -> str:
    local = starts_at.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    return local.strftime("%d.%m.%Y %H:%M")


def render_reminder(candidate: ReminderCandidate):
    cfg = current_app.config
    subject = cfg.get("REMINDER_SUBJECT", "Reminder: study appointment")
    when = format_start(candidate.starts_at, cfg.get("DISPLAY_TIMEZONE", "Europe/Zurich"))
    base_url = (cfg.get("APP_BASE_URL") or "").rstrip("/")

    body = (
        "This is an automatic reminder of your study appointment.\n\n"
        f"Service: {candidate.service_name}\n"
        f"Time: {when}\n"
    )
    if base_url:
        body += f"\nReschedule or cancel:\n{base_url}/dashboard\n"
    return subject, body


def find_due_reminders(now, window=None, report=None):
    """Active, not yet reminded bookings whose slot starts in (now, now + window]."""
    window = window or _lookahead()
    horizon = now + window

    rows = (
        db.session.query(Booking, Slot, Service, Participant)
        .outerjoin(Slot, Slot.id == Booking.slot_id)
        .outerjoin(Service, Service.id == Booking.service_id)
        .outerjoin(Participant, Participant.id == Booking.participant_id)
        .filter(
            Booking.status == BOOKED,
            Booking.reminder_sent_at.is_(None),
            or_(Slot.id.is_(None), and_(Slot.starts_at > now, Slot.starts_at <= horizon)),
        )
        .order_by(Slot.starts_at.asc(), Booking.id.asc())
        .all()
    )

    due = []
    for booking, slot, service, participant in rows:
        if slot is None or service is None or participant is None or not participant.email:
            # broken cross reference: nothing a retry can fix, so report it once
            log = logger.debug if booking.id in _reported_unresolved else logger.error
            _reported_unresolved.add(booking.id)
            log(
                "Reminder skipped for booking %s: unresolved slot=%s service=%s participant=%s",
                booking.id, booking.slot_id, booking.service_id, booking.participant_id,
            )
            if report is not None:
                report.record(SKIPPED, booking.id, error="unresolved reference")
            continue
        due.append(ReminderCandidate(
            booking_id=booking.id,
            slot_id=slot.id,
            participant_id=participant.id,
            starts_at=slot.starts_at,
            service_name=service.name,
            email=participant.email,
        ))
    return due


def mark_reminder_sent(booking_id: int, slot_id: int, now) -> bool:
    """Set reminder_sent_at only if the booking still holds `slot_id` unreminded."""
    result = db.session.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.slot_id == slot_id,
            Booking.status == BOOKED,
            Booking.reminder_sent_at.is_(None),
        )
        .values(reminder_sent_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def dispatch_reminders(now, mailer, window=None) -> DispatchReport:
    report = DispatchReport()
    due = find_due_reminders(now, window, report)
    # no transaction is held while mail goes out
    db.session.commit()

    logger.info("Reminder run at %s: %d booking(s) due", now.isoformat(), len(due))

    for candidate in due:
        subject, body = render_reminder(candidate)
        try:
            ok, error = mailer.send(candidate.email, subject, body)
        except Exception as exc:  # transport errors and timeouts are per-item failures
            ok, error = False, str(exc) or exc.__class__.__name__

        if not ok:
            logger.warning("Reminder for booking %s not sent: %s", candidate.booking_id, error)
            report.record(FAILED, candidate, error=error)
            continue

        try:
            marked = mark_reminder_sent(candidate.booking_id, candidate.slot_id, now)
        except (OperationalError, IntegrityError) as exc:
            # store busy or failing: the booking stays unmarked and is retried next run
            db.session.rollback()
            logger.warning("Reminder for booking %s sent but not marked: %s", candidate.booking_id, exc)
            report.record(FAILED, candidate, error="mark failed")
            continue

        if not marked:
            # rescheduled, cancelled or marked by an overlapping run meanwhile
            logger.info("Reminder for booking %s sent but assignment changed; left unmarked",
                        candidate.booking_id)
            report.record(STALE, candidate)
            continue

        report.record(SENT, candidate)
        try:
            log_event(
                "REMINDER_SENT",
                participant_id=candidate.participant_id,
                entity="booking",
                entity_id=candidate.booking_id,
                metadata={"slot_id": candidate.slot_id},
            )
        except (OperationalError, IntegrityError) as exc:
            db.session.rollback()
            logger.warning("Audit entry for reminder of booking %s not written: %s",
                           candidate.booking_id, exc)

    logger.info("Reminder run finished: sent=%d failed=%d stale=%d skipped=%d",
                report.sent, report.failed, report.stale, report.skipped)
    return report
