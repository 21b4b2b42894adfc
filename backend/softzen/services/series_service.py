from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import exists, func, select, update

from softzen import catalog
from softzen.db import Database
from softzen.errors import ValidationError
from softzen.models import Patient, TherapySeries, TherapySession
from softzen.schemas import SeriesOut
from softzen.validators import validate_duration


def build_postures(therapy_type: str, postures: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Resolve submitted posture items against the catalog entry for ``therapy_type``.

    Returns the ordered list stored on the series. Unknown ids are rejected with
    ``INVALID_POSTURE``; a missing per-posture duration falls back to the
    catalog's ``durationHint``.
    """
    resolved = []
    for index, item in enumerate(postures):
        record = catalog.find_posture(therapy_type, item["id"])
        if record is None:
            raise ValidationError(
                f"Posture {item['id']!r} is not part of the '{therapy_type}' catalog",
                "postures",
                "INVALID_POSTURE",
            )
        duration = item.get("durationMinutes", item.get("duration"))
        if duration in (None, ""):
            duration = record.get("durationHint")
        resolved.append({
            "id": record["id"],
            "name": record["name"],
            "sanskrit": record.get("sanskrit"),
            "durationMinutes": _posture_duration(duration, index),
        })
    return resolved


def _posture_duration(value: Any, index: int) -> int:
    try:
        minutes = validate_duration(value, field="postures")
    except ValidationError as exc:
        raise ValidationError(f"Posture #{index + 1}: {exc.message}", "postures", exc.code)
    return minutes


def snapshot(series: TherapySeries) -> Dict[str, Any]:
    """JSON copy of a series, as embedded in a patient record."""
    return SeriesOut.model_validate(series).model_dump(mode="json")


async def list_for_instructor(db: Database, instructor_id: int) -> List[Dict[str, Any]]:
    assigned = (
        select(Patient.assigned_series_id.label("series_id"), func.count(Patient.id).label("n"))
        .where(Patient.assigned_series_id.is_not(None))
        .group_by(Patient.assigned_series_id)
        .subquery()
    )
    sessions = (
        select(TherapySession.series_id.label("series_id"), func.count(TherapySession.id).label("n"))
        .group_by(TherapySession.series_id)
        .subquery()
    )
    q = (
        select(
            TherapySeries,
            func.coalesce(assigned.c.n, 0),
            func.coalesce(sessions.c.n, 0),
        )
        .join(assigned, assigned.c.series_id == TherapySeries.id, isouter=True)
        .join(sessions, sessions.c.series_id == TherapySeries.id, isouter=True)
        .where(TherapySeries.instructor_id == instructor_id, TherapySeries.is_active.is_(True))
        .order_by(TherapySeries.created_at.desc(), TherapySeries.id.desc())
    )
    async with db.session() as session:
        rows = (await session.execute(q)).all()
    return [
        {"series": s, "assigned_patients_count": n_assigned, "total_sessions_count": n_sessions}
        for s, n_assigned, n_sessions in rows
    ]


async def get_owned(
    db: Database, series_id: int, instructor_id: int, *, active_only: bool = True
) -> Optional[TherapySeries]:
    q = select(TherapySeries).where(
        TherapySeries.id == series_id, TherapySeries.instructor_id == instructor_id
    )
    if active_only:
        q = q.where(TherapySeries.is_active.is_(True))
    async with db.session() as session:
        return (await session.execute(q)).scalar_one_or_none()


async def name_in_use(db: Database, instructor_id: int, name: str) -> bool:
    q = select(TherapySeries.id).where(
        TherapySeries.instructor_id == instructor_id,
        func.lower(TherapySeries.name) == name.lower(),
        TherapySeries.is_active.is_(True),
    )
    async with db.session() as session:
        return (await session.execute(q.limit(1))).first() is not None


async def create(
    db: Database,
    instructor_id: int,
    *,
    name: str,
    therapy_type: str,
    postures: List[Dict[str, Any]],
    total_sessions: int,
) -> TherapySeries:
    async with db.session() as session:
        series = TherapySeries(
            name=name,
            therapy_type=therapy_type,
            postures=postures,
            total_sessions=total_sessions,
            instructor_id=instructor_id,
            is_active=True,
        )
        session.add(series)
        await session.commit()
        await session.refresh(series)
        return series


async def is_assigned(db: Database, series_id: int) -> bool:
    async with db.session() as session:
        res = await session.execute(
            select(Patient.id)
            .where(Patient.assigned_series_id == series_id)
            .limit(1)
        )
        return res.first() is not None


async def soft_delete(db: Database, series_id: int, instructor_id: int) -> bool:
    """
    Deactivate an owned series unless any patient, active or not, still holds it.

    The holder check runs inside the UPDATE. Returns ``False`` when nothing
    was updated.
    """
    async with db.session() as session:
        res = await session.execute(
            update(TherapySeries)
            .where(
                TherapySeries.id == series_id,
                TherapySeries.instructor_id == instructor_id,
                TherapySeries.is_active.is_(True),
                ~exists().where(Patient.assigned_series_id == series_id),
            )
            .values(is_active=False)
        )
        await session.commit()
        return res.rowcount > 0
