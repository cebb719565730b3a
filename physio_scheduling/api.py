import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import config
from .errors import (
    AppointmentNotFound,
    DuplicateAppointment,
    InvalidTimeOfDay,
    PastDateTimeRejected,
    PatientNotFound,
    PhysiotherapistNotFound,
    RequestAlreadyResolved,
    RequestNotFound,
    SchedulingError,
)
from .models import (
    Appointment,
    BookRequest,
    BookResponse,
    DefaultSlot,
    DirectRescheduleRequest,
    ExerciseFeedback,
    FeedbackRequest,
    MinimumTime,
    Patient,
    PatientUpdate,
    Physiotherapist,
    ProgressMetrics,
    RescheduleRequest,
    RescheduleRespondRequest,
    RescheduleRespondResponse,
    TimeEditRequest,
    TimeEditResponse,
)
from .scheduler import AppointmentScheduler
from .seed import seed_demo_data
from .store import AppointmentStore
from .timeofday import normalise_time_of_day

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    PatientNotFound: 404,
    PhysiotherapistNotFound: 404,
    AppointmentNotFound: 404,
    RequestNotFound: 404,
    PastDateTimeRejected: 422,
    InvalidTimeOfDay: 422,
    DuplicateAppointment: 409,
    RequestAlreadyResolved: 409,
}


def create_app(store: Optional[AppointmentStore] = None, scheduler: Optional[AppointmentScheduler] = None) -> FastAPI:
    """Build the API around one store/scheduler pair owned by the app."""
    config.configure_logging()
    store = store if store is not None else AppointmentStore()
    if scheduler is None:
        scheduler = AppointmentScheduler(store)
    if config.SEED_DEMO_DATA:
        seed_demo_data(store)

    app = FastAPI(title="Physio Scheduling Service")
    app.state.store = store
    app.state.scheduler = scheduler

    @app.exception_handler(SchedulingError)
    async def scheduling_error(request: Request, exc: SchedulingError):
        status = _STATUS_BY_ERROR.get(type(exc), 400)
        logger.info("%s %s -> %s: %s", request.method, request.url.path, status, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    app.include_router(_routes())
    return app


def get_store(request: Request) -> AppointmentStore:
    return request.app.state.store


def get_scheduler(request: Request) -> AppointmentScheduler:
    return request.app.state.scheduler


def _routes():
    router = APIRouter()

    # Booking form helpers ---------------------------------------------------

    @router.get("/booking/default-slot", response_model=DefaultSlot)
    def default_slot(scheduler: AppointmentScheduler = Depends(get_scheduler)):
        """Pre-filled date/time for a new booking form."""
        slot_date, slot_time = scheduler.pick_default_booking_slot()
        return DefaultSlot(date=slot_date, time=slot_time)

    @router.get("/booking/minimum-time", response_model=MinimumTime)
    def minimum_time(
        on_date: date = Query(..., alias="date", description="YYYY-MM-DD selected day"),
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        return MinimumTime(minimum=scheduler.minimum_selectable_time(on_date))

    @router.post("/booking/time", response_model=TimeEditResponse)
    def edit_time(req: TimeEditRequest, scheduler: AppointmentScheduler = Depends(get_scheduler)):
        """Apply a time-only edit to the current selection."""
        selection = scheduler.combine_date_preserving_time(req.current, req.new_time)
        return TimeEditResponse(selection=selection, changed=selection != req.current)

    @router.post("/book", response_model=BookResponse, status_code=201)
    def book_appt(req: BookRequest, scheduler: AppointmentScheduler = Depends(get_scheduler)):
        appt = scheduler.propose_booking(req.patient_id, req.physiotherapist_id, req.date, req.time, req.notes)
        return BookResponse(
            appointment=appt,
            message=f"Appointment requested for {appt.date:%d %b, %Y} at {appt.time}",
        )

    # Patients ---------------------------------------------------------------

    @router.get("/patient/{patient_id}", response_model=Patient)
    def get_patient(patient_id: int, store: AppointmentStore = Depends(get_store)):
        patient = store.get_patient(patient_id)
        if patient is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        return patient

    @router.put("/patient/{patient_id}", response_model=Patient)
    def update_patient(patient_id: int, req: PatientUpdate, store: AppointmentStore = Depends(get_store)):
        with store.lock:
            current = store.get_patient(patient_id)
            if current is None:
                raise HTTPException(status_code=404, detail="Patient not found")
            physio_id = req.current_physiotherapist_id
            if physio_id is not None and store.get_physiotherapist(physio_id) is None:
                raise PhysiotherapistNotFound(physio_id)
            return store.update_patient(current.model_copy(update=req.model_dump()))

    @router.get("/patient/{patient_id}/appointments", response_model=list[Appointment])
    def list_appointments(
        patient_id: int,
        upcoming: bool = Query(False, description="Only appointments after the current time"),
        store: AppointmentStore = Depends(get_store),
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        patient = store.get_patient(patient_id)
        if patient is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        if upcoming:
            return store.upcoming_appointments(patient_id, scheduler.now())
        return patient.appointment_history

    @router.get("/patient/{patient_id}/reschedule-requests", response_model=list[RescheduleRequest])
    def list_reschedule_requests(patient_id: int, store: AppointmentStore = Depends(get_store)):
        if store.get_patient(patient_id) is None:
            raise HTTPException(status_code=404, detail="Patient not found")
        return store.pending_reschedule_requests(patient_id)

    @router.get("/physiotherapist/{physiotherapist_id}", response_model=Physiotherapist)
    def get_physiotherapist(physiotherapist_id: int, store: AppointmentStore = Depends(get_store)):
        physio = store.get_physiotherapist(physiotherapist_id)
        if physio is None:
            raise HTTPException(status_code=404, detail="Physiotherapist not found")
        return physio

    # Rescheduling -----------------------------------------------------------

    @router.post("/reschedule/{request_id}/respond", response_model=RescheduleRespondResponse)
    def respond_to_reschedule(
        request_id: str,
        req: RescheduleRespondRequest,
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        outcome = scheduler.respond_to_reschedule(request_id, req.new_date, req.new_time, req.accept)
        return RescheduleRespondResponse(
            request=outcome.request,
            appointment=outcome.appointment,
            warning=str(outcome.issue) if outcome.issue else None,
        )

    @router.post("/appointment/{appointment_id}/reschedule", response_model=Appointment)
    def reschedule_appt(
        appointment_id: int,
        req: DirectRescheduleRequest,
        store: AppointmentStore = Depends(get_store),
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        time_str = normalise_time_of_day(req.new_time)
        scheduler.ensure_future(req.new_date, time_str)
        if not store.reschedule_appointment(appointment_id, req.new_date, time_str):
            raise AppointmentNotFound(appointment_id)
        return store.get_appointment(appointment_id)

    @router.post("/appointment/{appointment_id}/confirm", response_model=Appointment)
    def confirm_appt(appointment_id: int, store: AppointmentStore = Depends(get_store)):
        appt = store.confirm_appointment(appointment_id)
        if appt is None:
            raise AppointmentNotFound(appointment_id)
        return appt

    # Exercise feedback and progress ----------------------------------------

    @router.post("/patient/{patient_id}/feedback", response_model=ExerciseFeedback, status_code=201)
    def submit_feedback(
        patient_id: int,
        req: FeedbackRequest,
        store: AppointmentStore = Depends(get_store),
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        return store.record_feedback(patient_id, submitted_at=scheduler.now(), **req.model_dump())

    @router.get("/patient/{patient_id}/progress", response_model=ProgressMetrics)
    def get_progress(
        patient_id: int,
        day: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to today"),
        store: AppointmentStore = Depends(get_store),
        scheduler: AppointmentScheduler = Depends(get_scheduler),
    ):
        return store.calculate_progress_metrics(patient_id, day or scheduler.now().date())

    return router


app = create_app()
