from __future__ import annotations
from functools import partial

from fastapi import APIRouter, Depends

import structlog

from softzen.api.deps import Retry, get_cache, get_db, get_retry, get_settings
from softzen.cache import ResponseCache
from softzen.config import Settings
from softzen.db import Database
from softzen.errors import NotFoundError
from softzen.models import User
from softzen.schemas import MySeriesResponse, PatientInfo, SessionOut, SessionPayload, SessionResponse
from softzen.services import analytics_service, notification_service, patient_service, session_service
from softzen.services.auth_service import require_patient
from softzen.validators import entity_steps, validate_fields

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["sessions"])

SESSION_PREFIXES = ("/api/patients", "/api/dashboard", "/api/therapy-series")


@router.get("/my-series", response_model=MySeriesResponse)
async def get_my_series(
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_patient),
):
    """The series assigned to the logged-in patient, with their progress."""
    patient = await retry(lambda: patient_service.find_active_by_email(db, current_user.email))
    if patient is None or not patient.assigned_series:
        raise NotFoundError("No assigned series found")

    return MySeriesResponse(
        series=patient.assigned_series,
        currentSession=patient.current_session or 0,
        patient_info=PatientInfo(name=patient.name, condition=patient.condition),
    )


@router.post("/sessions", response_model=SessionResponse)
async def complete_session(
    payload: SessionPayload,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_patient),
):
    steps = entity_steps("session", comments_min_length=settings.comments_min_length)
    values = validate_fields(steps, payload.model_dump()).raise_first()

    patient = await retry(lambda: patient_service.find_active_by_email(db, current_user.email))
    if patient is None:
        raise NotFoundError("Patient not found")
    if not patient.assigned_series:
        raise NotFoundError("No assigned series found")

    row = await retry(
        partial(session_service.record_session, db, patient.id, patient.assigned_series, values),
        name="record_session",
    )

    improvement = row.pain_before - row.pain_after
    await notification_service.notify(
        db,
        patient.instructor_id,
        "session_completed",
        "Session completed",
        f"{patient.name} completed session {row.session_number} with a pain improvement of {improvement} points.",
    )
    cache.invalidate_by_prefix(*SESSION_PREFIXES)
    await analytics_service.log_event(
        db,
        current_user.id,
        "session_completed",
        {"sessionId": row.id, "painImprovement": improvement, "sessionNumber": row.session_number},
    )
    logger.info("session_completed", patient_id=patient.id, session_number=row.session_number)
    return SessionResponse(**SessionOut.model_validate(row).model_dump(), message="Session completed successfully")
