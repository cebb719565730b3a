"""Errors raised by the scheduling core.

API handlers translate these into HTTP responses; nothing here is fatal.
"""


class SchedulingError(Exception):
    """Base for every recoverable scheduling failure."""


class PatientNotFound(SchedulingError):
    def __init__(self, patient_id: int):
        super().__init__(f"Patient {patient_id} not found")
        self.patient_id = patient_id


class PhysiotherapistNotFound(SchedulingError):
    def __init__(self, physiotherapist_id: int | None):
        super().__init__(f"Physiotherapist {physiotherapist_id} not found")
        self.physiotherapist_id = physiotherapist_id


class AppointmentNotFound(SchedulingError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class RequestNotFound(SchedulingError):
    def __init__(self, request_id: str):
        super().__init__(f"Reschedule request {request_id} not found")
        self.request_id = request_id


class RequestAlreadyResolved(SchedulingError):
    def __init__(self, request_id: str, state: str):
        super().__init__(f"Reschedule request {request_id} is already {state}")
        self.request_id = request_id
        self.state = state


class PastDateTimeRejected(SchedulingError):
    def __init__(self, requested, now):
        super().__init__(f"{requested:%d %b %Y %I:%M %p} is not in the future")
        self.requested = requested
        self.now = now


class InvalidTimeOfDay(SchedulingError):
    def __init__(self, value):
        super().__init__(f"Unrecognised time of day: {value!r}" if value is not None else "A new date and time are required")
        self.value = value


class DuplicateAppointment(SchedulingError):
    def __init__(self, appointment_id: int):
        super().__init__(f"An identical appointment already exists ({appointment_id})")
        self.appointment_id = appointment_id


class OriginalAppointmentNotFound(SchedulingError):
    """Reported, never raised: the reschedule request is resolved anyway."""

    def __init__(self, request_id: str, matches: int = 0):
        reason = "no appointment matches" if matches == 0 else f"{matches} appointments match"
        super().__init__(f"Reschedule request {request_id}: {reason} the original date/time")
        self.request_id = request_id
        self.matches = matches
