import logging
import sqlite3
from datetime import timedelta

from models import db
from models.audit_log import AuditLog
from models.booking import Booking
from scheduling.ledger import cancel_booking, create_booking, reschedule_booking
from scheduling import reminders
from scheduling.reminders import dispatch_reminders, find_due_reminders, format_start
from tests.conftest import NOW, dispose_file_app, make_file_app, seed_store


def _booking(session, booking_id):
    session.expire_all()
    return session.get(Booking, booking_id)


def test_sends_once_and_marks_sent(session, service, make_slot, p1, mailer, now):
    slot = make_slot(service, now + timedelta(hours=10))
    booking = create_booking(p1.id, service.id, slot.id, now)

    report = dispatch_reminders(now, mailer)

    assert report.sent == 1
    assert len(mailer.sent) == 1
    to, subject, body = mailer.sent[0]
    assert to == "p1@study.test"
    assert service.name in body
    assert "https://study.test/dashboard" in body
    assert _booking(session, booking.id).reminder_sent_at == now

    second = dispatch_reminders(now + timedelta(minutes=30), mailer)

    assert second.sent == 0
    assert len(mailer.attempts) == 1
    assert AuditLog.query.filter_by(action="REMINDER_SENT").count() == 1


def test_window_bounds(service, make_slot, make_participant, mailer, now):
    inside = make_participant("inside@study.test")
    edge = make_participant("edge@study.test")
    beyond = make_participant("beyond@study.test")
    create_booking(inside.id, service.id, make_slot(service, now + timedelta(hours=1)).id, now)
    create_booking(edge.id, service.id, make_slot(service, now + timedelta(hours=24)).id, now)
    create_booking(beyond.id, service.id, make_slot(service, now + timedelta(hours=25)).id, now)

    dispatch_reminders(now, mailer)

    assert sorted(to for to, _, _ in mailer.sent) == ["edge@study.test", "inside@study.test"]


def test_started_and_cancelled_bookings_are_ignored(service, make_slot, make_participant, mailer, now):
    early = make_participant("early@study.test")
    gone = make_participant("gone@study.test")
    create_booking(early.id, service.id, make_slot(service, now + timedelta(hours=1)).id, now)
    cancelled = create_booking(gone.id, service.id, make_slot(service, now + timedelta(hours=2)).id, now)
    cancel_booking(cancelled.id, now)

    # an hour later the first slot has started
    report = dispatch_reminders(now + timedelta(hours=1), mailer)

    assert report.sent == 0
    assert mailer.attempts == []


def test_failed_send_is_retried_next_run(session, service, make_slot, make_participant, mailer, now):
    ok = make_participant("ok@study.test")
    bounced = make_participant("bounce@study.test")
    slow = make_participant("slow@study.test")
    bookings = {
        p.email: create_booking(p.id, service.id, make_slot(service, now + timedelta(hours=h)).id, now)
        for h, p in ((2, ok), (3, bounced), (4, slow))
    }
    mailer.fail_for.add("bounce@study.test")
    mailer.raise_for.add("slow@study.test")

    report = dispatch_reminders(now, mailer)

    assert report.sent == 1
    assert report.failed == 2
    assert _booking(session, bookings["bounce@study.test"].id).reminder_sent_at is None
    assert _booking(session, bookings["slow@study.test"].id).reminder_sent_at is None

    mailer.fail_for.clear()
    mailer.raise_for.clear()
    retry = dispatch_reminders(now + timedelta(minutes=10), mailer)

    assert retry.sent == 2
    assert sorted(to for to, _, _ in mailer.sent) == ["bounce@study.test", "ok@study.test", "slow@study.test"]


def test_reschedule_after_reminder_rearms_exactly_once(session, service, make_slot, p1, mailer, now):
    first = make_slot(service, now + timedelta(hours=5))
    second = make_slot(service, now + timedelta(hours=20))
    booking = create_booking(p1.id, service.id, first.id, now)
    dispatch_reminders(now, mailer)
    assert len(mailer.sent) == 1

    reschedule_booking(booking.id, second.id, now + timedelta(hours=1))
    dispatch_reminders(now + timedelta(hours=1), mailer)
    dispatch_reminders(now + timedelta(hours=2), mailer)

    assert len(mailer.sent) == 2
    assert _booking(session, booking.id).reminder_sent_at == now + timedelta(hours=1)


def test_reschedule_between_send_and_mark_leaves_booking_eligible(session, service, make_slot, p1, mailer, now):
    first = make_slot(service, now + timedelta(hours=5))
    second = make_slot(service, now + timedelta(hours=6))
    booking = create_booking(p1.id, service.id, first.id, now)
    booking_id, second_id = booking.id, second.id

    def move_during_send(to):
        mailer.on_send = None
        reschedule_booking(booking_id, second_id, now)

    mailer.on_send = move_during_send
    report = dispatch_reminders(now, mailer)

    assert report.stale == 1
    assert report.sent == 0
    moved = _booking(session, booking_id)
    assert moved.slot_id == second_id
    assert moved.reminder_sent_at is None

    again = dispatch_reminders(now + timedelta(minutes=1), mailer)

    assert again.sent == 1
    assert _booking(session, booking_id).reminder_sent_at == now + timedelta(minutes=1)


def test_custom_window(service, make_slot, p1, mailer, now):
    create_booking(p1.id, service.id, make_slot(service, now + timedelta(hours=30)).id, now)

    assert dispatch_reminders(now, mailer).sent == 0
    assert dispatch_reminders(now, mailer, window=timedelta(hours=48)).sent == 1


def test_find_due_reminders_resolves_contact_and_service(service, make_slot, p1, now):
    slot = make_slot(service, now + timedelta(hours=3))
    booking = create_booking(p1.id, service.id, slot.id, now)

    [candidate] = find_due_reminders(now)

    assert candidate.booking_id == booking.id
    assert candidate.slot_id == slot.id
    assert candidate.email == "p1@study.test"
    assert candidate.service_name == service.name


def test_format_start_uses_display_timezone(now):
    # 08:00 UTC in March is 09:00 in Zurich (CET)
    assert format_start(now, "Europe/Zurich") == "02.03.2026 09:00"


def test_unresolved_booking_is_logged_once_and_skipped_every_run(session, service, make_slot, make_participant,
                                                                  mailer, now, caplog, monkeypatch):
    monkeypatch.setattr(reminders, "_reported_unresolved", set())
    nobody = make_participant("")
    booking = create_booking(nobody.id, service.id, make_slot(service, now + timedelta(hours=2)).id, now)

    with caplog.at_level(logging.ERROR, logger="scheduling.reminders"):
        first = dispatch_reminders(now, mailer)
        second = dispatch_reminders(now + timedelta(minutes=10), mailer)

    assert first.skipped == second.skipped == 1
    assert second.details == [{"booking_id": booking.id, "outcome": "skipped", "error": "unresolved reference"}]
    assert mailer.attempts == []
    errors = [r for r in caplog.records if r.levelno == logging.ERROR and "unresolved" in r.getMessage()]
    assert len(errors) == 1


def test_busy_store_while_marking_fails_only_that_item(tmp_path, mailer):
    db_path = tmp_path / "busy.db"
    app = make_file_app(db_path, mailer, timeout=0.2)
    service_id, people, slots = seed_store(app, participants=2, slots=2)
    with app.app_context():
        first = create_booking(people[0], service_id, slots[0], NOW).id
        second = create_booking(people[1], service_id, slots[1], NOW).id

    # another writer holds the database while the first reminder is out
    blocker = sqlite3.connect(str(db_path), isolation_level=None)

    def hold_store_during_first_send(to):
        if to == "racer0@study.test":
            blocker.execute("BEGIN IMMEDIATE")
        else:
            blocker.execute("ROLLBACK")

    mailer.on_send = hold_store_during_first_send
    try:
        with app.app_context():
            report = dispatch_reminders(NOW, mailer)

            assert mailer.attempts == ["racer0@study.test", "racer1@study.test"]
            assert report.sent == 1
            assert report.failed == 1
            assert report.details[0] == {"booking_id": first, "outcome": "failed", "error": "mark failed"}
            assert _booking(db.session, first).reminder_sent_at is None
            assert _booking(db.session, second).reminder_sent_at == NOW

            mailer.on_send = None
            retry = dispatch_reminders(NOW + timedelta(minutes=10), mailer)

            assert retry.sent == 1
            assert _booking(db.session, first).reminder_sent_at == NOW + timedelta(minutes=10)
    finally:
        blocker.close()
        dispose_file_app(app)
