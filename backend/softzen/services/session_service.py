from __future__ import annotations
from typing import Any, Dict

from sqlalchemy import func, update

from softzen.db import Database
from softzen.errors import ValidationError
from softzen.models import Patient, TherapySession


async def record_session(
    db: Database, patient_id: int, series: Dict[str, Any], values: Dict[str, Any]
) -> TherapySession:
    """
    Advance the patient's session counter and append the session row, atomically.

    The counter is bumped with a single conditional ``UPDATE ... RETURNING`` so
    concurrent completions for one patient queue up on the row and each get
    the next number. If the series is already complete nothing is written and
    ``SERIES_COMPLETED`` is raised.
    """
    async with db.transaction() as session:
        advanced = await session.execute(
            update(Patient)
            .where(
                Patient.id == patient_id,
                Patient.is_active.is_(True),
                Patient.assigned_series_id == series["id"],
                Patient.current_session < series["total_sessions"],
            )
            .values(current_session=Patient.current_session + 1, updated_at=func.now())
            .returning(Patient.current_session)
            .execution_options(synchronize_session=False)
        )
        session_number = advanced.scalar_one_or_none()
        if session_number is None:
            raise ValidationError(
                "All sessions of the assigned series have been completed",
                "session",
                "SERIES_COMPLETED",
            )

        row = TherapySession(
            patient_id=patient_id,
            series_id=series["id"],
            session_number=session_number,
            pain_before=values["painBefore"],
            pain_after=values["painAfter"],
            comments=values["comments"],
            duration_minutes=values["durationMinutes"],
        )
        session.add(row)
        await session.flush()
        await session.refresh(row)
    return row
