from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update

from softzen.db import Database
from softzen.models import Patient, TherapySeries, TherapySession


async def list_for_instructor(db: Database, instructor_id: int) -> List[Dict[str, Any]]:
    """Active patients with their completed-session count and average pain improvement."""
    q = (
        select(
            Patient,
            func.count(TherapySession.id).label("total_sessions_completed"),
            func.avg(TherapySession.pain_before - TherapySession.pain_after).label("avg_pain_improvement"),
        )
        .join(TherapySession, TherapySession.patient_id == Patient.id, isouter=True)
        .where(Patient.instructor_id == instructor_id, Patient.is_active.is_(True))
        .group_by(Patient.id)
        .order_by(Patient.created_at.desc(), Patient.id.desc())
    )
    async with db.session() as session:
        rows = (await session.execute(q)).all()

    patients = []
    for patient, completed, avg_improvement in rows:
        patients.append({
            "patient": patient,
            "total_sessions_completed": completed or 0,
            "avg_pain_improvement": round(float(avg_improvement), 2) if avg_improvement is not None else None,
        })
    return patients


async def get_owned(
    db: Database, patient_id: int, instructor_id: int, *, active_only: bool = True
) -> Optional[Patient]:
    q = select(Patient).where(Patient.id == patient_id, Patient.instructor_id == instructor_id)
    if active_only:
        q = q.where(Patient.is_active.is_(True))
    async with db.session() as session:
        return (await session.execute(q)).scalar_one_or_none()


async def email_in_use(
    db: Database, instructor_id: int, email: str, *, exclude_id: Optional[int] = None
) -> bool:
    # uniqueness is scoped to one instructor's active patients
    q = select(Patient.id).where(
        Patient.instructor_id == instructor_id,
        Patient.email == email,
        Patient.is_active.is_(True),
    )
    if exclude_id is not None:
        q = q.where(Patient.id != exclude_id)
    async with db.session() as session:
        return (await session.execute(q.limit(1))).first() is not None


async def create(db: Database, instructor_id: int, values: Dict[str, Any]) -> Patient:
    async with db.session() as session:
        patient = Patient(
            name=values["name"],
            email=values["email"],
            age=values["age"],
            condition=values["condition"],
            instructor_id=instructor_id,
            current_session=0,
            is_active=True,
        )
        session.add(patient)
        await session.commit()
        await session.refresh(patient)
        return patient


async def update_owned(
    db: Database, patient_id: int, instructor_id: int, values: Dict[str, Any]
) -> Optional[Patient]:
    async with db.session() as session:
        q = select(Patient).where(
            Patient.id == patient_id,
            Patient.instructor_id == instructor_id,
            Patient.is_active.is_(True),
        )
        patient = (await session.execute(q)).scalar_one_or_none()
        if patient is None:
            return None
        patient.name = values["name"]
        patient.email = values["email"]
        patient.age = values["age"]
        patient.condition = values["condition"]
        await session.commit()
        await session.refresh(patient)
        return patient


async def soft_delete(db: Database, patient_id: int, instructor_id: int) -> bool:
    async with db.session() as session:
        res = await session.execute(
            update(Patient)
            .where(
                Patient.id == patient_id,
                Patient.instructor_id == instructor_id,
                Patient.is_active.is_(True),
            )
            .values(is_active=False, updated_at=func.now())
        )
        await session.commit()
        return res.rowcount > 0


async def assign_series(db: Database, patient_id: int, snapshot: Dict[str, Any]) -> Optional[Patient]:
    """Store a series snapshot on the patient and restart their session count."""
    async with db.session() as session:
        patient = await session.get(Patient, patient_id)
        if patient is None:
            return None
        patient.assigned_series = snapshot
        patient.assigned_series_id = snapshot["id"]
        patient.current_session = 0
        await session.commit()
        await session.refresh(patient)
        return patient


async def find_active_by_email(db: Database, email: str) -> Optional[Patient]:
    # the same address may be a patient of several instructors; newest record wins
    q = (
        select(Patient)
        .where(Patient.email == email, Patient.is_active.is_(True))
        .order_by(Patient.created_at.desc(), Patient.id.desc())
        .limit(1)
    )
    async with db.session() as session:
        return (await session.execute(q)).scalar_one_or_none()


async def list_sessions(db: Database, patient_id: int) -> List[Dict[str, Any]]:
    q = (
        select(TherapySession, TherapySeries.name, TherapySeries.therapy_type)
        .join(TherapySeries, TherapySeries.id == TherapySession.series_id, isouter=True)
        .where(TherapySession.patient_id == patient_id)
        .order_by(TherapySession.completed_at.desc(), TherapySession.id.desc())
    )
    async with db.session() as session:
        rows = (await session.execute(q)).all()
    return [
        {"session": s, "series_name": series_name, "therapy_type": therapy_type}
        for s, series_name, therapy_type in rows
    ]
