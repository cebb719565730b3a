import logging
from datetime import date, datetime, time, timedelta, timezone
import pytest
from physio_scheduling.errors import (
    DuplicateAppointment,
    InvalidTimeOfDay,
    PastDateTimeRejected,
    PatientNotFound,
    PhysiotherapistNotFound,
    RequestAlreadyResolved,
    RequestNotFound,
)
from physio_scheduling.models import AppointmentStatus, RequestState
from physio_scheduling.scheduler import AppointmentScheduler

from conftest import NOW, fixed_clock, make_appointment, make_request


# Default slot / time pickers -------------------------------------------------

@pytest.mark.parametrize("moment", [
    datetime(2025, 6, 10, 0, 0),
    datetime(2025, 6, 10, 11, 30),
    datetime(2025, 6, 10, 23, 59),
    datetime(2025, 12, 31, 18, 0),
])
def test_default_slot_is_tomorrow_at_nine(store, moment):
    s = AppointmentScheduler(store, clock=fixed_clock(moment))
    slot_date, slot_time = s.pick_default_booking_slot()
    assert slot_date == moment.date() + timedelta(days=1)
    assert slot_time == "9:00 AM"
    assert s.default_booking_instant() == datetime.combine(slot_date, time(9, 0))


def test_minimum_time_for_future_day_is_midnight(scheduler):
    assert scheduler.minimum_selectable_time(date(2025, 6, 11)) == datetime(2025, 6, 11, 0, 0)
    assert scheduler.minimum_selectable_time(date(2026, 1, 3)) == datetime(2026, 1, 3, 0, 0)


def test_minimum_time_for_today_is_now(scheduler):
    assert scheduler.minimum_selectable_time(NOW.date()) == NOW


def test_minimum_time_for_today_moves_forward(store):
    s = AppointmentScheduler(store)
    today = datetime.now().date()
    first = s.minimum_selectable_time(today)
    second = s.minimum_selectable_time(today)
    assert second >= first


def test_time_edit_keeps_future_date(store):
    s = AppointmentScheduler(store, clock=fixed_clock(datetime(2025, 6, 1, 12, 0)))
    result = s.combine_date_preserving_time(datetime(2025, 6, 10, 14, 0), "9:00 AM")
    assert result == datetime(2025, 6, 10, 9, 0)


def test_time_edit_accepts_time_and_datetime_values(scheduler):
    current = datetime(2025, 6, 12, 14, 0)
    assert scheduler.combine_date_preserving_time(current, time(8, 15)) == datetime(2025, 6, 12, 8, 15)
    picked = datetime(2025, 6, 10, 7, 45)  # picker hands back its own date
    assert scheduler.combine_date_preserving_time(current, picked) == datetime(2025, 6, 12, 7, 45)


def test_time_edit_into_the_past_today_is_ignored(scheduler):
    current = datetime(2025, 6, 10, 8, 0)
    assert scheduler.combine_date_preserving_time(current, "10:00 AM") == current
    assert scheduler.combine_date_preserving_time(current, "11:30 AM") == current


def test_time_edit_later_today_is_accepted(scheduler):
    current = datetime(2025, 6, 10, 12, 0)
    assert scheduler.combine_date_preserving_time(current, "4:30 PM") == datetime(2025, 6, 10, 16, 30)


def test_time_edit_keeps_utc_offset(scheduler):
    plus_two = timezone(timedelta(hours=2))
    current = datetime(2025, 6, 12, 14, 0, tzinfo=plus_two)
    result = scheduler.combine_date_preserving_time(current, "9:00 AM")
    assert result == datetime(2025, 6, 12, 9, 0, tzinfo=plus_two)
    assert result.tzinfo is plus_two


def test_time_edit_with_aware_clock_and_naive_selection(store):
    s = AppointmentScheduler(store, clock=fixed_clock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)))
    assert s.combine_date_preserving_time(datetime(2025, 6, 12, 14, 0), "9:00 AM") == datetime(2025, 6, 12, 9, 0)


# Booking ---------------------------------------------------------------------

def test_booking_creates_pending_appointment(scheduler, store):
    appt = scheduler.propose_booking(1, 1, date(2025, 6, 12), "10:00 AM", "Ankle sprain follow-up")
    assert appt.status == AppointmentStatus.pending
    assert appt.time == "10:00 AM"
    assert appt.notes == "Ankle sprain follow-up"
    assert store.get_patient(1).appointment_history == [appt]
    assert store.get_appointment(appt.id) is appt


def test_booking_ids_are_unique(scheduler):
    ids = {scheduler.propose_booking(1, 1, date(2025, 6, 12), f"{h}:00 PM").id for h in range(1, 6)}
    assert len(ids) == 5


def test_booking_skips_ids_already_in_store(scheduler, store):
    store.add_appointment(make_appointment(appt_id=1000))
    appt = scheduler.propose_booking(1, 1, date(2025, 6, 12), "10:00 AM")
    assert appt.id != 1000


def test_booking_exactly_now_is_rejected(scheduler, store):
    with pytest.raises(PastDateTimeRejected):
        scheduler.propose_booking(1, 1, NOW.date(), "11:30 AM")
    assert store.get_patient(1).appointment_history == []


def test_booking_just_after_now_is_accepted(scheduler):
    appt = scheduler.propose_booking(1, 1, NOW.date(), "11:31 AM")
    assert appt.date == NOW.date()


@pytest.mark.parametrize("on, at", [
    (date(2025, 6, 10), "9:00 AM"),
    (date(2025, 6, 9), "11:00 PM"),
    (date(2024, 1, 1), "10:00 AM"),
])
def test_booking_in_the_past_is_rejected(scheduler, on, at):
    with pytest.raises(PastDateTimeRejected):
        scheduler.propose_booking(1, 1, on, at)


def test_booking_unknown_patient(scheduler, store):
    with pytest.raises(PatientNotFound):
        scheduler.propose_booking(99, 1, date(2025, 6, 12), "10:00 AM")
    assert list(store.iter_appointments()) == []


def test_booking_falls_back_to_assigned_physiotherapist(scheduler):
    appt = scheduler.propose_booking(1, None, date(2025, 6, 12), "10:00 AM")
    assert appt.physiotherapist_id == 1


def test_booking_without_any_physiotherapist(scheduler):
    with pytest.raises(PhysiotherapistNotFound):
        scheduler.propose_booking(2, None, date(2025, 6, 12), "10:00 AM")
    with pytest.raises(PhysiotherapistNotFound):
        scheduler.propose_booking(1, 42, date(2025, 6, 12), "10:00 AM")


def test_booking_normalises_time_strings(scheduler):
    assert scheduler.propose_booking(1, 1, date(2025, 6, 12), "15:00").time == "3:00 PM"
    assert scheduler.propose_booking(1, 1, date(2025, 6, 12), time(8, 5)).time == "8:05 AM"
    assert scheduler.propose_booking(1, 1, date(2025, 6, 12), "09:30 am").time == "9:30 AM"


def test_booking_rejects_garbage_time(scheduler):
    with pytest.raises(InvalidTimeOfDay):
        scheduler.propose_booking(1, 1, date(2025, 6, 12), "half past nine")


def test_booking_same_slot_twice_is_a_duplicate(scheduler):
    first = scheduler.propose_booking(1, 1, date(2025, 6, 12), "10:00 AM")
    with pytest.raises(DuplicateAppointment) as exc:
        scheduler.propose_booking(1, 1, date(2025, 6, 12), "10:00 AM")
    assert exc.value.appointment_id == first.id
    # a different physiotherapist at the same time is a separate booking
    scheduler.propose_booking(1, 2, date(2025, 6, 12), "10:00 AM")


# Reschedule responses --------------------------------------------------------

def test_accept_moves_appointment_and_keeps_status(store):
    s = AppointmentScheduler(store, clock=fixed_clock(datetime(2025, 3, 20, 9, 0)))
    store.add_appointment(make_appointment(appt_id=7, on=date(2025, 4, 1), time="10:00 AM"))
    store.add_reschedule_request(make_request(on=date(2025, 4, 1), time="10:00 AM"))

    outcome = s.respond_to_reschedule("req-1", date(2025, 4, 10), "3:00 PM", accept=True)

    appt = store.get_appointment(7)
    assert (appt.date, appt.time, appt.status) == (date(2025, 4, 10), "3:00 PM", AppointmentStatus.pending)
    assert outcome.request.state == RequestState.accepted
    assert outcome.request.suggested_date == date(2025, 4, 10)
    assert outcome.request.suggested_time == "3:00 PM"
    assert outcome.appointment is appt
    assert outcome.issue is None


def test_accept_leaves_confirmed_status_alone(scheduler, store):
    store.add_appointment(make_appointment(status=AppointmentStatus.confirmed))
    store.add_reschedule_request(make_request())
    scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=True)
    assert store.get_appointment(500).status == AppointmentStatus.confirmed


@pytest.mark.parametrize("status", list(AppointmentStatus))
def test_decline_never_touches_appointment(scheduler, store, status):
    store.add_appointment(make_appointment(status=status))
    store.add_reschedule_request(make_request())
    before = store.get_appointment(500).model_dump()

    outcome = scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=False)

    assert outcome.request.state == RequestState.declined
    assert outcome.appointment is None
    assert store.get_appointment(500).model_dump() == before


def test_decline_needs_no_new_date(scheduler, store):
    store.add_reschedule_request(make_request())
    outcome = scheduler.respond_to_reschedule("req-1", None, None, accept=False)
    assert outcome.request.state == RequestState.declined


def test_unknown_request(scheduler):
    with pytest.raises(RequestNotFound):
        scheduler.respond_to_reschedule("nope", date(2025, 6, 25), "2:00 PM", accept=True)


def test_request_is_terminal_once_resolved(scheduler, store):
    store.add_reschedule_request(make_request())
    scheduler.respond_to_reschedule("req-1", None, None, accept=False)
    with pytest.raises(RequestAlreadyResolved):
        scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=True)
    assert store.get_reschedule_request("req-1").state == RequestState.declined


def test_accept_into_the_past_is_rejected(scheduler, store):
    store.add_appointment(make_appointment())
    store.add_reschedule_request(make_request())
    with pytest.raises(PastDateTimeRejected):
        scheduler.respond_to_reschedule("req-1", NOW.date(), "11:00 AM", accept=True)
    assert store.get_reschedule_request("req-1").state == RequestState.pending
    assert store.get_appointment(500).date == date(2025, 6, 20)


def test_accept_without_new_time_is_rejected(scheduler, store):
    store.add_reschedule_request(make_request())
    with pytest.raises(InvalidTimeOfDay):
        scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), None, accept=True)
    assert store.get_reschedule_request("req-1").state == RequestState.pending


def test_accept_without_original_still_resolves(scheduler, store, caplog):
    store.add_appointment(make_appointment(time="11:00 AM"))
    store.add_reschedule_request(make_request(time="10:00 AM"))

    with caplog.at_level(logging.WARNING, logger="physio_scheduling.scheduler"):
        outcome = scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=True)

    assert outcome.request.state == RequestState.accepted
    assert outcome.appointment is None
    assert outcome.issue is not None and outcome.issue.matches == 0
    assert store.get_appointment(500).time == "11:00 AM"
    assert "appointment left unchanged" in caplog.text


def test_accept_with_ambiguous_original_is_a_miss(scheduler, store):
    store.add_appointment(make_appointment(appt_id=501, physio_id=1))
    store.add_appointment(make_appointment(appt_id=502, physio_id=2))
    store.add_reschedule_request(make_request())

    outcome = scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=True)

    assert outcome.issue.matches == 2
    assert outcome.request.state == RequestState.accepted
    assert {a.date for a in store.iter_appointments()} == {date(2025, 6, 20)}


def test_original_match_is_scoped_to_patient(scheduler, store):
    store.add_appointment(make_appointment(patient_id=2, physio_id=2))
    store.add_reschedule_request(make_request(patient_id=1))
    outcome = scheduler.respond_to_reschedule("req-1", date(2025, 6, 25), "2:00 PM", accept=True)
    assert outcome.issue is not None
    assert store.get_appointment(500).date == date(2025, 6, 20)
