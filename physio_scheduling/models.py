from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field, computed_field


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"


class RequestState(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"


class Exercise(BaseModel):
    id: int
    name: str
    sets: int = 3
    reps_per_set: int = 10
    duration_minutes: int = 5


class Appointment(BaseModel):
    id: int
    patient_id: int
    physiotherapist_id: int
    date: date
    time: str  # "h:mm AM/PM", e.g. "10:00 AM"
    notes: str = ""
    status: AppointmentStatus = AppointmentStatus.pending


class Patient(BaseModel):
    id: int
    name: str
    email: str = ""
    mobile: str = ""
    current_physiotherapist_id: int | None = None
    appointment_history: list[Appointment] = Field(default_factory=list)
    exercises: list[Exercise] = Field(default_factory=list)


class Physiotherapist(BaseModel):
    id: int
    name: str
    email: str = ""
    mobile: str = ""
    experience_years: int = 0
    patient_ids: list[int] = Field(default_factory=list)


class RescheduleRequest(BaseModel):
    """A physiotherapist's request to move an appointment, awaiting the patient."""
    id: str
    patient_id: int
    original_date: date
    original_time: str
    state: RequestState = RequestState.pending
    suggested_date: date | None = None
    suggested_time: str | None = None


class ExerciseFeedback(BaseModel):
    id: int
    patient_id: int
    exercise_id: int
    submitted_at: datetime
    comment: str = ""
    pain_level: int = Field(ge=1, le=10)
    completed: bool = True


class ProgressMetrics(BaseModel):
    completed: int
    total: int
    average_pain: float = 0.0

    @computed_field
    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.completed / self.total * 100.0


# API payloads ---------------------------------------------------------------

class BookRequest(BaseModel):
    patient_id: int
    physiotherapist_id: int | None = None  # falls back to the patient's physiotherapist
    date: date
    time: str
    notes: str = ""


class BookResponse(BaseModel):
    appointment: Appointment
    message: str


class DefaultSlot(BaseModel):
    date: date
    time: str


class MinimumTime(BaseModel):
    minimum: datetime


class TimeEditRequest(BaseModel):
    current: datetime
    new_time: str


class TimeEditResponse(BaseModel):
    selection: datetime
    changed: bool


class RescheduleRespondRequest(BaseModel):
    accept: bool
    new_date: date | None = None  # ignored when declining
    new_time: str | None = None


class RescheduleRespondResponse(BaseModel):
    request: RescheduleRequest
    appointment: Appointment | None = None
    warning: str | None = None


class DirectRescheduleRequest(BaseModel):
    new_date: date
    new_time: str


class PatientUpdate(BaseModel):
    name: str
    email: str = ""
    mobile: str = ""
    current_physiotherapist_id: int | None = None


class FeedbackRequest(BaseModel):
    exercise_id: int
    comment: str = ""
    pain_level: int = Field(ge=1, le=10)
    completed: bool = True
