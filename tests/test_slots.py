from datetime import timedelta

import pytest

from models.booking import Booking, BOOKED
from models.slot import Slot
from scheduling.errors import (
    InvalidSlot,
    ServiceNotFound,
    SlotAlreadyExists,
    SlotHasActiveBooking,
    SlotNotFound,
)
from scheduling.ledger import cancel_booking, create_booking
from scheduling.slots import create_slot, delete_slot, list_available, slot_overview


def test_list_available_orders_soonest_first_and_breaks_ties_by_id(make_service, make_slot, now):
    us = make_service()
    mri = make_service("MRI (baseline)", "MRI", "BASELINE")
    later = make_slot(us, now + timedelta(hours=5))
    sooner = make_slot(us, now + timedelta(hours=2))
    make_slot(mri, now + timedelta(hours=1))

    result = list_available(us.id, now)

    assert [s.id for s in result] == [sooner.id, later.id]


def test_list_available_hides_past_and_full_slots(service, make_slot, p1, now):
    past = make_slot(service, now - timedelta(hours=1))
    starting_now = make_slot(service, now)
    full = make_slot(service, now + timedelta(hours=3))
    open_slot = make_slot(service, now + timedelta(hours=4))
    create_booking(p1.id, service.id, full.id, now)

    ids = [s.id for s in list_available(service.id, now)]

    assert open_slot.id in ids
    assert past.id not in ids
    assert starting_now.id not in ids
    assert full.id not in ids


def test_list_available_respects_capacity(service, make_slot, make_participant, now):
    slot = make_slot(service, now + timedelta(hours=3), capacity=2)
    a = make_participant("a@study.test")
    b = make_participant("b@study.test")

    create_booking(a.id, service.id, slot.id, now)
    assert [s.id for s in list_available(service.id, now)] == [slot.id]

    create_booking(b.id, service.id, slot.id, now)
    assert list_available(service.id, now) == []


def test_list_available_is_empty_for_retired_service(make_service, make_slot, now):
    retired = make_service(active=False)
    make_slot(retired, now + timedelta(hours=3))

    assert list_available(retired.id, now) == []


def test_create_slot_spans_one_hour(service, now):
    slot = create_slot(service.id, now + timedelta(days=1))

    assert slot.ends_at - slot.starts_at == timedelta(hours=1)
    assert slot.capacity == 1


def test_create_slot_rejects_duplicate_start(service, now):
    create_slot(service.id, now + timedelta(days=1))

    with pytest.raises(SlotAlreadyExists):
        create_slot(service.id, now + timedelta(days=1))


def test_create_slot_validates_capacity_and_service(make_service, service, now):
    with pytest.raises(InvalidSlot):
        create_slot(service.id, now + timedelta(days=1), capacity=0)

    retired = make_service("MRI (follow-up)", "MRI", "FOLLOWUP", active=False)
    with pytest.raises(ServiceNotFound):
        create_slot(retired.id, now + timedelta(days=1))
    with pytest.raises(ServiceNotFound):
        create_slot(9999, now + timedelta(days=1))


def test_delete_refused_while_active_booking_then_allowed_after_cancel(session, service, make_slot, p1, now):
    slot_id = make_slot(service, now + timedelta(hours=2)).id
    booking = create_booking(p1.id, service.id, slot_id, now)

    with pytest.raises(SlotHasActiveBooking):
        delete_slot(slot_id)
    assert session.get(Slot, slot_id) is not None

    cancel_booking(booking.id, now)
    delete_slot(slot_id)

    assert session.get(Slot, slot_id) is None
    assert Booking.query.filter_by(slot_id=slot_id).count() == 0


def test_delete_unknown_slot(app):
    with pytest.raises(SlotNotFound):
        delete_slot(12345)


def test_slot_overview_reports_holders(service, make_slot, p1, now):
    booked = make_slot(service, now + timedelta(hours=2))
    free = make_slot(service, now + timedelta(hours=3))
    create_booking(p1.id, service.id, booked.id, now)

    rows = {r["slot_id"]: r for r in slot_overview()}

    assert rows[booked.id]["booked"] is True
    assert rows[booked.id]["participant_emails"] == ["p1@study.test"]
    assert rows[booked.id]["service_name"] == service.name
    assert rows[free.id]["booked"] is False
    assert rows[free.id]["booked_count"] == 0
    assert Booking.query.filter_by(status=BOOKED).count() == 1
