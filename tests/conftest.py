from datetime import date, datetime
import pytest
from physio_scheduling.models import Appointment, Exercise, Patient, Physiotherapist, RescheduleRequest
from physio_scheduling.scheduler import AppointmentScheduler
from physio_scheduling.store import AppointmentStore

# Tuesday late morning; "today" for every scheduler built by the fixtures below.
NOW = datetime(2025, 6, 10, 11, 30)


def fixed_clock(moment: datetime):
    return lambda: moment


@pytest.fixture
def store():
    s = AppointmentStore()
    s.add_physiotherapist(Physiotherapist(id=1, name="Dr. Sarah Mitchell"))
    s.add_physiotherapist(Physiotherapist(id=2, name="Dr. James Rodriguez"))
    s.add_patient(Patient(id=1, name="Alex Johnson", current_physiotherapist_id=1))
    s.add_patient(Patient(id=2, name="Priya Sharma"))
    return s


@pytest.fixture
def scheduler(store):
    return AppointmentScheduler(store, clock=fixed_clock(NOW))


@pytest.fixture
def exercises():
    return [
        Exercise(id=1, name="Single Leg Balance"),
        Exercise(id=2, name="Calf Stretch"),
        Exercise(id=3, name="Heel Raises"),
    ]


def make_appointment(appt_id=500, patient_id=1, physio_id=1, on=date(2025, 6, 20), time="10:00 AM", **kw):
    return Appointment(id=appt_id, patient_id=patient_id, physiotherapist_id=physio_id, date=on, time=time, **kw)


def make_request(request_id="req-1", patient_id=1, on=date(2025, 6, 20), time="10:00 AM"):
    return RescheduleRequest(id=request_id, patient_id=patient_id, original_date=on, original_time=time)
