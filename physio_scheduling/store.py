"""In-memory store for patients, appointments, reschedule requests and exercise feedback.

One instance is created per app (see ``api.create_app``) and handed to the
scheduler; there is no module-level store.
"""
from __future__ import annotations

import itertools
import logging
import threading
from collections import OrderedDict
from datetime import date, datetime
from typing import Iterator

from .errors import PatientNotFound
from .models import (
    Appointment,
    AppointmentStatus,
    Exercise,
    ExerciseFeedback,
    Patient,
    Physiotherapist,
    ProgressMetrics,
    RequestState,
    RescheduleRequest,
)
from .timeofday import appointment_start

logger = logging.getLogger(__name__)

# Upper bound on cached (patient, day) progress entries; oldest are evicted first.
PROGRESS_CACHE_SIZE = 256


class AppointmentStore:
    def __init__(self) -> None:
        self._patients: dict[int, Patient] = {}
        self._physiotherapists: dict[int, Physiotherapist] = {}
        self._requests: dict[str, RescheduleRequest] = {}
        self._feedback: list[ExerciseFeedback] = []
        self._progress_cache: OrderedDict[tuple[int, date], ProgressMetrics] = OrderedDict()
        self._feedback_ids = itertools.count(1)
        self._lock = threading.RLock()

    @property
    def lock(self):
        """Held by multi-step workflows that read then write."""
        return self._lock

    # Lookups -------------------------------------------------------------

    def get_patient(self, patient_id: int) -> Patient | None:
        return self._patients.get(patient_id)

    def get_physiotherapist(self, physiotherapist_id: int) -> Physiotherapist | None:
        return self._physiotherapists.get(physiotherapist_id)

    def iter_appointments(self) -> Iterator[Appointment]:
        for patient in list(self._patients.values()):
            yield from patient.appointment_history

    def get_appointment(self, appointment_id: int) -> Appointment | None:
        return next((a for a in self.iter_appointments() if a.id == appointment_id), None)

    def find_matching_appointments(self, patient_id: int, on_date: date, time: str) -> list[Appointment]:
        """Appointments of ``patient_id`` on the same calendar day with the same time string."""
        patient = self._patients.get(patient_id)
        if patient is None:
            return []
        return [
            a for a in patient.appointment_history
            if a.date == on_date and a.time == time and a.patient_id == patient_id
        ]

    def upcoming_appointments(self, patient_id: int, now: datetime) -> list[Appointment]:
        patient = self._patients.get(patient_id)
        if patient is None:
            return []
        upcoming = [a for a in patient.appointment_history if appointment_start(a) > now]
        return sorted(upcoming, key=appointment_start)

    # Patients and physiotherapists ----------------------------------------

    def add_patient(self, patient: Patient) -> None:
        with self._lock:
            self._patients[patient.id] = patient

    def add_physiotherapist(self, physiotherapist: Physiotherapist) -> None:
        with self._lock:
            self._physiotherapists[physiotherapist.id] = physiotherapist

    def update_patient(self, patient: Patient) -> Patient:
        """Replace a patient's profile fields; the appointment history stays as stored."""
        with self._lock:
            stored = self._patients.get(patient.id)
            if stored is None:
                raise PatientNotFound(patient.id)
            updated = patient.model_copy(update={"appointment_history": stored.appointment_history})
            self._patients[patient.id] = updated
            self._invalidate_progress(patient.id)
            return updated

    # Appointments ----------------------------------------------------------

    def add_appointment(self, appointment: Appointment) -> None:
        with self._lock:
            # patient existence is validated by the scheduler
            self._patients[appointment.patient_id].appointment_history.append(appointment)
            physio = self._physiotherapists.get(appointment.physiotherapist_id)
            if physio is not None and appointment.patient_id not in physio.patient_ids:
                physio.patient_ids.append(appointment.patient_id)

    def reschedule_appointment(self, appointment_id: int, new_date: date, new_time: str) -> bool:
        with self._lock:
            appointment = self.get_appointment(appointment_id)
            if appointment is None:
                return False
            appointment.date = new_date
            appointment.time = new_time
            logger.info("Appointment %s moved to %s %s", appointment_id, new_date, new_time)
            return True

    def confirm_appointment(self, appointment_id: int) -> Appointment | None:
        with self._lock:
            appointment = self.get_appointment(appointment_id)
            if appointment is not None:
                appointment.status = AppointmentStatus.confirmed
                logger.info("Appointment %s confirmed", appointment_id)
            return appointment

    # Reschedule requests ---------------------------------------------------

    def add_reschedule_request(self, request: RescheduleRequest) -> None:
        with self._lock:
            self._requests[request.id] = request

    def get_reschedule_request(self, request_id: str) -> RescheduleRequest | None:
        return self._requests.get(request_id)

    def pending_reschedule_requests(self, patient_id: int) -> list[RescheduleRequest]:
        return [
            r for r in self._requests.values()
            if r.patient_id == patient_id and r.state == RequestState.pending
        ]

    def resolve_reschedule_request(
        self,
        request_id: str,
        state: RequestState,
        suggested_date: date | None = None,
        suggested_time: str | None = None,
    ) -> RescheduleRequest:
        with self._lock:
            request = self._requests[request_id]
            request.state = state
            if state == RequestState.accepted:
                request.suggested_date = suggested_date
                request.suggested_time = suggested_time
            return request

    # Exercises and progress ------------------------------------------------

    def assign_exercises(self, patient_id: int, exercises: list[Exercise]) -> None:
        with self._lock:
            patient = self._patients.get(patient_id)
            if patient is None:
                raise PatientNotFound(patient_id)
            patient.exercises = list(exercises)
            self._invalidate_progress(patient_id)

    def add_exercise_feedback(self, feedback: ExerciseFeedback) -> None:
        with self._lock:
            self._append_feedback(feedback)

    def record_feedback(
        self,
        patient_id: int,
        exercise_id: int,
        submitted_at: datetime,
        pain_level: int,
        comment: str = "",
        completed: bool = True,
    ) -> ExerciseFeedback:
        """Allocate a feedback id and store the entry in one step."""
        with self._lock:
            if patient_id not in self._patients:
                raise PatientNotFound(patient_id)
            feedback = ExerciseFeedback(
                id=next(self._feedback_ids),
                patient_id=patient_id,
                exercise_id=exercise_id,
                submitted_at=submitted_at,
                comment=comment,
                pain_level=pain_level,
                completed=completed,
            )
            self._append_feedback(feedback)
            return feedback

    def _append_feedback(self, feedback: ExerciseFeedback) -> None:
        self._feedback.append(feedback)
        self._invalidate_progress(feedback.patient_id, feedback.submitted_at.date())

    def exercise_feedback(self, patient_id: int) -> list[ExerciseFeedback]:
        return [f for f in self._feedback if f.patient_id == patient_id]

    def calculate_progress_metrics(self, patient_id: int, for_day: date) -> ProgressMetrics:
        key = (patient_id, for_day)
        with self._lock:
            cached = self._progress_cache.get(key)
            if cached is not None:
                self._progress_cache.move_to_end(key)
                return cached

            patient = self._patients.get(patient_id)
            if patient is None:
                raise PatientNotFound(patient_id)

            day_feedback = [f for f in self.exercise_feedback(patient_id) if f.submitted_at.date() == for_day]
            completed = {f.exercise_id for f in day_feedback if f.completed}
            avg_pain = sum(f.pain_level for f in day_feedback) / len(day_feedback) if day_feedback else 0.0

            metrics = ProgressMetrics(
                completed=len(completed),
                total=len(patient.exercises),
                average_pain=avg_pain,
            )
            self._progress_cache[key] = metrics
            while len(self._progress_cache) > PROGRESS_CACHE_SIZE:
                self._progress_cache.popitem(last=False)
            return metrics

    def _invalidate_progress(self, patient_id: int, day: date | None = None) -> None:
        if day is not None:
            dropped = self._progress_cache.pop((patient_id, day), None) is not None
        else:
            stale = [k for k in self._progress_cache if k[0] == patient_id]
            for k in stale:
                del self._progress_cache[k]
            dropped = bool(stale)
        if dropped:
            logger.debug("Progress cache invalidated for patient %s (%s)", patient_id, day or "all days")
