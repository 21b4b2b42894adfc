from __future__ import annotations
import csv
import io
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from softzen.db import Database
from softzen.errors import ValidationError
from softzen.models import Patient, TherapySeries, TherapySession

CSV_COLUMNS = [
    ("patient_name", "Patient"),
    ("patient_email", "Email"),
    ("patient_age", "Age"),
    ("patient_condition", "Condition"),
    ("series_name", "Series"),
    ("therapy_type", "Therapy type"),
    ("session_number", "Session"),
    ("pain_before", "Pain before"),
    ("pain_after", "Pain after"),
    ("pain_improvement", "Improvement"),
    ("duration_minutes", "Duration (min)"),
    ("comments", "Comments"),
    ("completed_at", "Date"),
]


def parse_report_date(value: Optional[str], field: str, *, end_of_day: bool = False) -> Optional[datetime]:
    """Accept ``YYYY-MM-DD`` or a full ISO timestamp; a bare ``dateTo`` covers the whole day."""
    if value in (None, ""):
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field, "FORMAT")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


async def fetch_rows(
    db: Database, instructor_id: int, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    q = (
        select(
            Patient.name, Patient.email, Patient.age, Patient.condition,
            TherapySeries.name, TherapySeries.therapy_type,
            TherapySession.session_number, TherapySession.pain_before, TherapySession.pain_after,
            TherapySession.duration_minutes, TherapySession.comments, TherapySession.completed_at,
        )
        .join(Patient, Patient.id == TherapySession.patient_id)
        .join(TherapySeries, TherapySeries.id == TherapySession.series_id)
        .where(Patient.instructor_id == instructor_id)
        .order_by(TherapySession.completed_at.desc(), TherapySession.id.desc())
    )
    if date_from is not None and date_to is not None:
        q = q.where(TherapySession.completed_at.between(date_from, date_to))
    async with db.session() as session:
        rows = (await session.execute(q)).all()
    return [
        {
            "patient_name": r[0],
            "patient_email": r[1],
            "patient_age": r[2],
            "patient_condition": r[3],
            "series_name": r[4],
            "therapy_type": r[5],
            "session_number": r[6],
            "pain_before": r[7],
            "pain_after": r[8],
            "pain_improvement": r[7] - r[8],
            "duration_minutes": r[9],
            "comments": r[10],
            "completed_at": r[11],
        }
        for r in rows
    ]


def summarize(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = len(rows)
    improvement = sum(r["pain_improvement"] for r in rows) / total if total else 0
    return {"total_sessions": total, "avg_pain_improvement": round(improvement, 2)}


def to_csv(rows: List[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([label for _, label in CSV_COLUMNS])
    for row in rows:
        values = []
        for key, _ in CSV_COLUMNS:
            value = row[key]
            values.append(value.isoformat() if isinstance(value, datetime) else value)
        writer.writerow(values)
    return buf.getvalue()
