from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, Request

from softzen import catalog
from softzen.api.deps import Retry, cached_json, get_cache, get_db, get_retry, get_settings
from softzen.cache import ResponseCache
from softzen.config import Settings
from softzen.db import Database
from softzen.errors import ConflictError, NotFoundError, ValidationError
from softzen.models import User
from softzen.schemas import MessageResponse, SeriesOut, SeriesPayload, SeriesResponse, SeriesWithStats, TherapyTypeOut
from softzen.services import analytics_service, series_service
from softzen.services.auth_service import get_current_user, require_instructor
from softzen.validators import entity_steps, validate_fields

router = APIRouter(prefix="/api", tags=["series"])

SERIES_PREFIXES = ("/api/therapy-series", "/api/dashboard")


@router.get("/therapy-types", response_model=List[TherapyTypeOut])
async def list_therapy_types(
    request: Request,
    cache: ResponseCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    async def build():
        return catalog.therapy_types_payload()

    return await cached_json(cache, request, current_user.id, build, ttl=settings.catalog_cache_ttl)


@router.get("/therapy-series", response_model=List[SeriesWithStats])
async def list_series(
    request: Request,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    async def build():
        rows = await retry(lambda: series_service.list_for_instructor(db, current_user.id))
        return [
            SeriesWithStats(
                **SeriesOut.model_validate(r["series"]).model_dump(),
                assigned_patients_count=r["assigned_patients_count"],
                total_sessions_count=r["total_sessions_count"],
            )
            for r in rows
        ]

    return await cached_json(cache, request, current_user.id, build)


@router.post("/therapy-series", response_model=SeriesResponse)
async def create_series(
    payload: SeriesPayload,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    values = validate_fields(entity_steps("series"), payload.model_dump()).raise_first()
    postures = series_service.build_postures(values["therapyType"], values["postures"])

    if await retry(lambda: series_service.name_in_use(db, current_user.id, values["name"])):
        raise ValidationError("You already have a series with this name", "name", "DUPLICATE_NAME")

    series = await retry(lambda: series_service.create(
        db,
        current_user.id,
        name=values["name"],
        therapy_type=values["therapyType"],
        postures=postures,
        total_sessions=values["totalSessions"],
    ))

    cache.invalidate_by_prefix(*SERIES_PREFIXES)
    await analytics_service.log_event(
        db,
        current_user.id,
        "series_created",
        {"seriesId": series.id, "therapyType": series.therapy_type, "posturesCount": len(postures)},
    )
    return SeriesResponse(**SeriesOut.model_validate(series).model_dump(), message="Series created successfully")


@router.delete("/therapy-series/{series_id}", response_model=MessageResponse)
async def delete_series(
    series_id: int,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    series = await retry(lambda: series_service.get_owned(db, series_id, current_user.id))
    if series is None:
        raise NotFoundError("Series not found")

    deleted = await retry(lambda: series_service.soft_delete(db, series_id, current_user.id))
    if not deleted:
        if await retry(lambda: series_service.is_assigned(db, series_id)):
            raise ConflictError("A series that is assigned to patients cannot be deleted", "SERIES_IN_USE")
        raise NotFoundError("Series not found")

    cache.invalidate_by_prefix(*SERIES_PREFIXES)
    await analytics_service.log_event(db, current_user.id, "series_deleted", {"seriesId": series_id})
    return {"message": "Series deleted successfully"}
