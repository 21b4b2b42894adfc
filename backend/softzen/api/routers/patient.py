from __future__ import annotations
import asyncio
from typing import List

from fastapi import APIRouter, Depends, Request

from softzen.api.deps import Retry, cached_json, get_cache, get_db, get_retry
from softzen.cache import ResponseCache
from softzen.db import Database
from softzen.errors import NotFoundError, ValidationError
from softzen.models import User
from softzen.schemas import (
    AssignSeriesRequest, MessageResponse, PatientOut, PatientPayload, PatientResponse,
    PatientWithStats, SessionWithSeries,
)
from softzen.services import analytics_service, notification_service, patient_service, series_service
from softzen.services.auth_service import require_instructor
from softzen.validators import entity_steps, parse_integer, validate_fields

router = APIRouter(prefix="/api/patients", tags=["patient"])

# cached reads that depend on patient rows
PATIENT_PREFIXES = ("/api/patients", "/api/dashboard", "/api/therapy-series")


@router.get("", response_model=List[PatientWithStats])
async def list_patients(
    request: Request,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    """Active patients of the current instructor, newest first."""

    async def build():
        rows = await retry(lambda: patient_service.list_for_instructor(db, current_user.id))
        return [
            PatientWithStats(
                **PatientOut.model_validate(r["patient"]).model_dump(),
                total_sessions_completed=r["total_sessions_completed"],
                avg_pain_improvement=r["avg_pain_improvement"],
            )
            for r in rows
        ]

    return await cached_json(cache, request, current_user.id, build)


@router.post("", response_model=PatientResponse)
async def create_patient(
    payload: PatientPayload,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    values = validate_fields(entity_steps("patient"), payload.model_dump()).raise_first()

    if await retry(lambda: patient_service.email_in_use(db, current_user.id, values["email"])):
        raise ValidationError("You already have a patient with this email", "email", "DUPLICATE_EMAIL")

    patient = await retry(lambda: patient_service.create(db, current_user.id, values))

    cache.invalidate_by_prefix(*PATIENT_PREFIXES)
    await analytics_service.log_event(db, current_user.id, "patient_created", {"patientId": patient.id})
    return PatientResponse(**PatientOut.model_validate(patient).model_dump(), message="Patient created successfully")


@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    payload: PatientPayload,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    values = validate_fields(entity_steps("patient"), payload.model_dump()).raise_first()

    in_use = await retry(
        lambda: patient_service.email_in_use(db, current_user.id, values["email"], exclude_id=patient_id)
    )
    if in_use:
        raise ValidationError("You already have a patient with this email", "email", "DUPLICATE_EMAIL")

    patient = await retry(lambda: patient_service.update_owned(db, patient_id, current_user.id, values))
    if patient is None:
        raise NotFoundError("Patient not found")

    cache.invalidate_by_prefix(*PATIENT_PREFIXES)
    await analytics_service.log_event(db, current_user.id, "patient_updated", {"patientId": patient_id})
    return PatientResponse(**PatientOut.model_validate(patient).model_dump(), message="Patient updated successfully")


@router.delete("/{patient_id}", response_model=MessageResponse)
async def delete_patient(
    patient_id: int,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    deleted = await retry(lambda: patient_service.soft_delete(db, patient_id, current_user.id))
    if not deleted:
        raise NotFoundError("Patient not found")

    cache.invalidate_by_prefix(*PATIENT_PREFIXES)
    await analytics_service.log_event(db, current_user.id, "patient_deleted", {"patientId": patient_id})
    return {"message": "Patient deleted successfully"}


@router.post("/{patient_id}/assign-series", response_model=PatientResponse)
async def assign_series(
    patient_id: int,
    req: AssignSeriesRequest,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    series_id = parse_integer(req.seriesId, "seriesId", "Series id")

    # two independent reads, run side by side; both settle before any failure is raised
    results = await asyncio.gather(
        retry(lambda: patient_service.get_owned(db, patient_id, current_user.id)),
        retry(lambda: series_service.get_owned(db, series_id, current_user.id)),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    patient, series = results
    if patient is None or series is None:
        raise NotFoundError("Patient or series not found")

    snapshot = series_service.snapshot(series)
    updated = await retry(lambda: patient_service.assign_series(db, patient.id, snapshot))

    await notification_service.notify_email(
        db,
        patient.email,
        "series_assigned",
        "New series assigned",
        f'Your instructor assigned you the series "{series.name}". You can start whenever you are ready!',
    )
    cache.invalidate_by_prefix(*PATIENT_PREFIXES)
    await analytics_service.log_event(
        db,
        current_user.id,
        "series_assigned",
        {"patientId": patient.id, "seriesId": series.id, "seriesName": series.name},
    )
    return PatientResponse(**PatientOut.model_validate(updated).model_dump(), message="Series assigned successfully")


@router.get("/{patient_id}/sessions", response_model=List[SessionWithSeries])
async def list_patient_sessions(
    patient_id: int,
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    patient = await retry(lambda: patient_service.get_owned(db, patient_id, current_user.id, active_only=False))
    if patient is None:
        raise NotFoundError("Patient not found")

    rows = await retry(lambda: patient_service.list_sessions(db, patient_id))
    return [
        SessionWithSeries(
            **SessionWithSeries.model_validate(r["session"]).model_dump(exclude={"series_name", "therapy_type"}),
            series_name=r["series_name"],
            therapy_type=r["therapy_type"],
        )
        for r in rows
    ]
