# backend/softzen/schemas.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

# Request bodies are deliberately loose: field rules live in softzen.validators so
# that every failure comes back as {error, field, code, type}.


class LooseBody(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RegisterRequest(LooseBody):
    email: Any = None
    password: Any = None
    name: Any = None
    role: Any = None


class LoginRequest(LooseBody):
    email: Any = None
    password: Any = None


class PatientPayload(LooseBody):
    name: Any = None
    email: Any = None
    age: Any = None
    condition: Any = None


class SeriesPayload(LooseBody):
    name: Any = None
    therapyType: Any = None
    postures: Any = None
    totalSessions: Any = None


class AssignSeriesRequest(LooseBody):
    seriesId: Any = None


class SessionPayload(LooseBody):
    painBefore: Any = None
    painAfter: Any = None
    comments: Any = None
    durationMinutes: Any = None


# Responses

class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserPublic(ORMModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    is_active: bool = True


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserPublic
    message: str


class MessageResponse(BaseModel):
    message: str


class PatientOut(ORMModel):
    id: int
    name: str
    email: str
    age: Optional[int] = None
    condition: Optional[str] = None
    instructor_id: int
    assigned_series: Optional[Dict[str, Any]] = None
    current_session: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_active: bool = True


class PatientWithStats(PatientOut):
    total_sessions_completed: int = 0
    avg_pain_improvement: Optional[float] = None


class PatientResponse(PatientOut):
    message: str


class SeriesOut(ORMModel):
    id: int
    name: str
    therapy_type: str
    postures: List[Dict[str, Any]]
    total_sessions: int
    instructor_id: int
    created_at: Optional[datetime] = None
    is_active: bool = True


class SeriesWithStats(SeriesOut):
    assigned_patients_count: int = 0
    total_sessions_count: int = 0


class SeriesResponse(SeriesOut):
    message: str


class TherapyTypeOut(BaseModel):
    id: str
    name: str
    postures: List[Dict[str, Any]]


class SessionOut(ORMModel):
    id: int
    patient_id: int
    series_id: int
    session_number: int
    pain_before: int
    pain_after: int
    comments: str
    duration_minutes: int
    completed_at: Optional[datetime] = None


class SessionWithSeries(SessionOut):
    series_name: Optional[str] = None
    therapy_type: Optional[str] = None


class SessionResponse(SessionOut):
    message: str


class PatientInfo(BaseModel):
    name: str
    condition: Optional[str] = None


class MySeriesResponse(BaseModel):
    series: Dict[str, Any]
    currentSession: int
    patient_info: PatientInfo


class NotificationOut(ORMModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None


class BulkValidationResponse(BaseModel):
    entity: str
    valid: bool
    errors: List[Dict[str, Any]]
    values: Dict[str, Any]
