from __future__ import annotations
import asyncio
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select

from softzen.db import Database
from softzen.models import Patient, TherapySeries, TherapySession

RECENT_ACTIVITY_LIMIT = 10
TREND_MONTHS = 6


def _round(value: Optional[float], digits: int = 2) -> float:
    return round(float(value or 0), digits)


async def _overview(db: Database, instructor_id: int) -> Dict[str, Any]:
    async with db.session() as session:
        patients = (await session.execute(
            select(
                func.count(Patient.id),
                func.count(Patient.assigned_series_id),
            ).where(Patient.instructor_id == instructor_id, Patient.is_active.is_(True))
        )).one()
        total_series = (await session.execute(
            select(func.count(TherapySeries.id)).where(
                TherapySeries.instructor_id == instructor_id, TherapySeries.is_active.is_(True)
            )
        )).scalar_one()
        sessions = (await session.execute(
            select(
                func.count(TherapySession.id),
                func.avg(TherapySession.pain_before - TherapySession.pain_after),
                func.avg(TherapySession.duration_minutes),
            )
            .join(Patient, Patient.id == TherapySession.patient_id)
            .where(Patient.instructor_id == instructor_id)
        )).one()
    return {
        "total_patients": patients[0],
        "active_patients": patients[1],
        "total_series": total_series,
        "total_sessions": sessions[0],
        "avg_pain_improvement": _round(sessions[1]),
        "avg_session_duration": round(float(sessions[2] or 0)),
    }


async def _recent_activity(db: Database, instructor_id: int) -> List[Dict[str, Any]]:
    q = (
        select(
            Patient.name,
            TherapySession.completed_at,
            TherapySession.pain_before,
            TherapySession.pain_after,
            TherapySession.session_number,
        )
        .join(Patient, Patient.id == TherapySession.patient_id)
        .where(Patient.instructor_id == instructor_id)
        .order_by(TherapySession.completed_at.desc(), TherapySession.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    async with db.session() as session:
        rows = (await session.execute(q)).all()
    return [
        {
            "type": "session",
            "patient_name": name,
            "date": completed_at,
            "pain_before": before,
            "pain_after": after,
            "session_number": number,
        }
        for name, completed_at, before, after, number in rows
    ]


async def _session_rows(db: Database, instructor_id: int, since: datetime):
    q = (
        select(TherapySession.completed_at, TherapySession.pain_before, TherapySession.pain_after)
        .join(Patient, Patient.id == TherapySession.patient_id)
        .where(Patient.instructor_id == instructor_id, TherapySession.completed_at >= since)
        .order_by(TherapySession.completed_at)
    )
    async with db.session() as session:
        return (await session.execute(q)).all()


def pain_trends(rows) -> List[Dict[str, Any]]:
    """Average pain before/after per calendar month, oldest first."""
    buckets: "OrderedDict[str, List[tuple]]" = OrderedDict()
    for completed_at, before, after in rows:
        if completed_at is None:
            continue
        buckets.setdefault(completed_at.strftime("%Y-%m"), []).append((before, after))
    return [
        {
            "month": month,
            "avg_pain_before": _round(sum(b for b, _ in values) / len(values)),
            "avg_pain_after": _round(sum(a for _, a in values) / len(values)),
            "session_count": len(values),
        }
        for month, values in sorted(buckets.items())
    ]


async def _therapy_type_stats(db: Database, instructor_id: int) -> List[Dict[str, Any]]:
    q = (
        select(
            TherapySeries.therapy_type,
            func.count(TherapySession.id),
            func.avg(TherapySession.pain_before - TherapySession.pain_after),
            func.avg(TherapySession.duration_minutes),
        )
        .join(TherapySeries, TherapySeries.id == TherapySession.series_id)
        .join(Patient, Patient.id == TherapySession.patient_id)
        .where(Patient.instructor_id == instructor_id)
        .group_by(TherapySeries.therapy_type)
        .order_by(TherapySeries.therapy_type)
    )
    async with db.session() as session:
        rows = (await session.execute(q)).all()
    return [
        {
            "therapy_type": therapy_type,
            "session_count": count,
            "avg_improvement": _round(avg_improvement),
            "avg_duration": _round(avg_duration),
        }
        for therapy_type, count, avg_improvement, avg_duration in rows
    ]


async def _pain_distribution(db: Database, instructor_id: int) -> Dict[str, Dict[str, int]]:
    """Session counts per pain level (0-10), before and after practice."""
    async with db.session() as session:
        before = (await session.execute(
            select(TherapySession.pain_before, func.count(TherapySession.id))
            .join(Patient, Patient.id == TherapySession.patient_id)
            .where(Patient.instructor_id == instructor_id)
            .group_by(TherapySession.pain_before)
        )).all()
        after = (await session.execute(
            select(TherapySession.pain_after, func.count(TherapySession.id))
            .join(Patient, Patient.id == TherapySession.patient_id)
            .where(Patient.instructor_id == instructor_id)
            .group_by(TherapySession.pain_after)
        )).all()
    distribution = {"before": {str(level): 0 for level in range(11)}, "after": {str(level): 0 for level in range(11)}}
    for level, count in before:
        distribution["before"][str(level)] = count
    for level, count in after:
        distribution["after"][str(level)] = count
    return distribution


async def instructor_dashboard(db: Database, instructor_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=30 * TREND_MONTHS)
    # independent reads, each on its own pooled connection
    stats, recent, trend_rows, by_type, distribution = await asyncio.gather(
        _overview(db, instructor_id),
        _recent_activity(db, instructor_id),
        _session_rows(db, instructor_id, since),
        _therapy_type_stats(db, instructor_id),
        _pain_distribution(db, instructor_id),
    )
    return {
        "stats": stats,
        "recentActivity": recent,
        "painTrends": pain_trends(trend_rows),
        "sessionStats": by_type,
        "painDistribution": distribution,
        "generated_at": now.isoformat(),
    }
