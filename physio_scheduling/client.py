"""Async client the patient app uses to talk to the scheduling API."""
from __future__ import annotations
from datetime import date
import httpx
from . import config
from .models import (
    BookResponse,
    DefaultSlot,
    Patient,
    ProgressMetrics,
    RescheduleRespondResponse,
)

_BASE_URL = config.API_BASE_URL
_HEADERS = {"Accept": "application/json"}


async def fetch_patient(patient_id: int) -> Patient:
    """Return the patient profile together with its appointment history."""
    async with httpx.AsyncClient(http2=True, timeout=15) as client:
        resp = await client.get(f"{_BASE_URL}/patient/{patient_id}", headers=_HEADERS)
        resp.raise_for_status()
        return Patient.model_validate(resp.json())


async def fetch_default_slot() -> DefaultSlot:
    async with httpx.AsyncClient(http2=True, timeout=15) as client:
        resp = await client.get(f"{_BASE_URL}/booking/default-slot", headers=_HEADERS)
        resp.raise_for_status()
        return DefaultSlot.model_validate(resp.json())


async def book_appointment(
    patient_id: int,
    appt_date: date,
    time: str,
    notes: str = "",
    physiotherapist_id: int | None = None,
) -> BookResponse:
    """Request a new appointment. 422 means the slot is in the past."""
    body = {
        "patient_id": patient_id,
        "physiotherapist_id": physiotherapist_id,
        "date": appt_date.isoformat(),
        "time": time,
        "notes": notes,
    }
    async with httpx.AsyncClient(http2=True, timeout=15) as client:
        resp = await client.post(f"{_BASE_URL}/book", headers=_HEADERS, json=body)
        resp.raise_for_status()
        return BookResponse.model_validate(resp.json())


async def respond_to_reschedule(
    request_id: str,
    accept: bool,
    new_date: date | None = None,
    new_time: str | None = None,
) -> RescheduleRespondResponse:
    body = {
        "accept": accept,
        "new_date": new_date.isoformat() if new_date else None,
        "new_time": new_time,
    }
    async with httpx.AsyncClient(http2=True, timeout=15) as client:
        resp = await client.post(f"{_BASE_URL}/reschedule/{request_id}/respond", headers=_HEADERS, json=body)
        resp.raise_for_status()
        return RescheduleRespondResponse.model_validate(resp.json())


async def fetch_progress(patient_id: int, day: date | None = None) -> ProgressMetrics:
    """Today's exercise completion for the progress ring."""
    params = {"day": day.isoformat()} if day else None
    async with httpx.AsyncClient(http2=True, timeout=15) as client:
        resp = await client.get(f"{_BASE_URL}/patient/{patient_id}/progress", headers=_HEADERS, params=params)
        resp.raise_for_status()
        return ProgressMetrics.model_validate(resp.json())
