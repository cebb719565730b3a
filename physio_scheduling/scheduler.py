"""Booking and reschedule-response workflow.

Every date/time a patient picks passes through here before it reaches the
store: nothing in the past, nothing for an unknown patient.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable

from .errors import (
    DuplicateAppointment,
    InvalidTimeOfDay,
    OriginalAppointmentNotFound,
    PastDateTimeRejected,
    PatientNotFound,
    PhysiotherapistNotFound,
    RequestAlreadyResolved,
    RequestNotFound,
)
from .models import Appointment, AppointmentStatus, RequestState, RescheduleRequest
from .store import AppointmentStore
from .timeofday import combine, format_time_of_day, normalise_time_of_day, parse_time_of_day

logger = logging.getLogger(__name__)

# Default slot offered on a fresh booking form: tomorrow at this local time.
DEFAULT_BOOKING_TIME = time(9, 0)


@dataclass
class RescheduleOutcome:
    request: RescheduleRequest
    appointment: Appointment | None = None
    issue: OriginalAppointmentNotFound | None = None


class AppointmentScheduler:
    def __init__(self, store: AppointmentStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock
        self._ids = itertools.count(1000)

    def now(self) -> datetime:
        return self._clock()

    # Date/time selection ---------------------------------------------------

    def pick_default_booking_slot(self) -> tuple[date, str]:
        tomorrow = self.now().date() + timedelta(days=1)
        return tomorrow, format_time_of_day(DEFAULT_BOOKING_TIME)

    def default_booking_instant(self) -> datetime:
        return datetime.combine(self.now().date() + timedelta(days=1), DEFAULT_BOOKING_TIME)

    def minimum_selectable_time(self, on_date: date) -> datetime:
        """Earliest instant a time picker may offer for ``on_date``."""
        now = self.now()
        if on_date == now.date():
            return now
        return datetime.combine(on_date, time.min)

    def combine_date_preserving_time(self, current_selection: datetime, new_time_of_day: str | time | datetime) -> datetime:
        """Apply a time-only edit to ``current_selection``, keeping its calendar date.

        An edit that would land in the past on today's date is ignored and the
        previous selection is returned. Future dates accept any time. A UTC
        offset on the selection is kept.
        """
        if isinstance(new_time_of_day, datetime):
            new_time_of_day = new_time_of_day.time()
        picked = parse_time_of_day(new_time_of_day)
        combined = current_selection.replace(hour=picked.hour, minute=picked.minute, second=0, microsecond=0)
        now = self.now()
        if combined.tzinfo is not None and now.tzinfo is None:
            # naive clock reads local time
            now = now.astimezone(combined.tzinfo)
        elif combined.tzinfo is None and now.tzinfo is not None:
            now = now.astimezone().replace(tzinfo=None)
        if combined <= now and current_selection.date() == now.date():
            return current_selection
        return combined

    def ensure_future(self, on_date: date, time_of_day: str | time) -> datetime:
        requested = combine(on_date, time_of_day)
        now = self.now()
        if requested <= now:
            raise PastDateTimeRejected(requested, now)
        return requested

    # Booking ---------------------------------------------------------------

    def propose_booking(
        self,
        patient_id: int,
        physiotherapist_id: int | None,
        on_date: date,
        time_of_day: str | time,
        notes: str = "",
    ) -> Appointment:
        with self.store.lock:
            return self._book(patient_id, physiotherapist_id, on_date, time_of_day, notes)

    def _book(self, patient_id, physiotherapist_id, on_date, time_of_day, notes) -> Appointment:
        patient = self.store.get_patient(patient_id)
        if patient is None:
            raise PatientNotFound(patient_id)

        physio_id = physiotherapist_id if physiotherapist_id is not None else patient.current_physiotherapist_id
        if physio_id is None or self.store.get_physiotherapist(physio_id) is None:
            raise PhysiotherapistNotFound(physio_id)

        time_str = normalise_time_of_day(time_of_day)
        self.ensure_future(on_date, time_str)

        for existing in patient.appointment_history:
            if existing.date == on_date and existing.time == time_str and existing.physiotherapist_id == physio_id:
                raise DuplicateAppointment(existing.id)

        appointment = Appointment(
            id=self._next_appointment_id(),
            patient_id=patient_id,
            physiotherapist_id=physio_id,
            date=on_date,
            time=time_str,
            notes=notes,
            status=AppointmentStatus.pending,
        )
        self.store.add_appointment(appointment)
        logger.info("Booked appointment %s for patient %s on %s %s", appointment.id, patient_id, on_date, time_str)
        return appointment

    def _next_appointment_id(self) -> int:
        while True:
            candidate = next(self._ids)
            if self.store.get_appointment(candidate) is None:
                return candidate

    # Reschedule responses --------------------------------------------------

    def respond_to_reschedule(
        self,
        request_id: str,
        new_date: date | None,
        new_time_of_day: str | time | None,
        accept: bool,
    ) -> RescheduleOutcome:
        """Resolve a pending request; accepting moves the matching appointment.

        A missing or ambiguous original appointment does not block the
        response: the request is still resolved and the outcome carries the
        issue.
        """
        with self.store.lock:
            return self._respond(request_id, new_date, new_time_of_day, accept)

    def _respond(self, request_id, new_date, new_time_of_day, accept) -> RescheduleOutcome:
        request = self.store.get_reschedule_request(request_id)
        if request is None:
            raise RequestNotFound(request_id)
        if request.state != RequestState.pending:
            raise RequestAlreadyResolved(request_id, request.state.value)

        if not accept:
            request = self.store.resolve_reschedule_request(request_id, RequestState.declined)
            logger.info("Reschedule request %s declined", request_id)
            return RescheduleOutcome(request=request)

        if new_date is None or new_time_of_day is None:
            raise InvalidTimeOfDay(new_time_of_day)
        time_str = normalise_time_of_day(new_time_of_day)
        self.ensure_future(new_date, time_str)

        request = self.store.resolve_reschedule_request(
            request_id, RequestState.accepted, suggested_date=new_date, suggested_time=time_str
        )
        logger.info("Reschedule request %s accepted for %s %s", request_id, new_date, time_str)

        matches = self.store.find_matching_appointments(request.patient_id, request.original_date, request.original_time)
        if len(matches) != 1:
            issue = OriginalAppointmentNotFound(request_id, matches=len(matches))
            logger.warning("%s; appointment left unchanged", issue)
            return RescheduleOutcome(request=request, issue=issue)

        original = matches[0]
        self.store.reschedule_appointment(original.id, new_date, time_str)
        return RescheduleOutcome(request=request, appointment=original)
