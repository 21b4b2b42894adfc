# backend/softzen/models.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, JSON, String, Text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from softzen.db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

UserRole = Literal["instructor", "patient", "admin"]


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role in ('instructor','patient','admin')", name="ck_users_role"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="instructor", nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    patients: Mapped[List["Patient"]] = relationship(
        back_populates="instructor", cascade="all, delete-orphan", passive_deletes=True
    )
    series: Mapped[List["TherapySeries"]] = relationship(
        back_populates="instructor", cascade="all, delete-orphan", passive_deletes=True
    )


class Patient(Base):
    """
    A patient owned by exactly one instructor.

    ``assigned_series`` is a copy of the series taken when it was assigned, so
    later changes to (or deletion of) the series never touch it.
    ``assigned_series_id`` mirrors the snapshot's id for querying.
    """
    __tablename__ = "patients"
    __table_args__ = (
        Index("idx_patients_instructor", "instructor_id"),
        Index("idx_patients_email", "email"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    condition: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    instructor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    assigned_series: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    assigned_series_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    current_session: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    instructor: Mapped["User"] = relationship(back_populates="patients")
    sessions: Mapped[List["TherapySession"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", passive_deletes=True
    )


class TherapySeries(Base):
    __tablename__ = "therapy_series"
    __table_args__ = (
        CheckConstraint("total_sessions between 1 and 100", name="ck_series_total_sessions"),
        Index("idx_series_instructor", "instructor_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    therapy_type: Mapped[str] = mapped_column(String(50), nullable=False)
    postures: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    instructor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    instructor: Mapped["User"] = relationship(back_populates="series")


class TherapySession(Base):
    """One completed practice of a patient's assigned series. Append-only."""
    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint("pain_before between 0 and 10", name="ck_sessions_pain_before"),
        CheckConstraint("pain_after between 0 and 10", name="ck_sessions_pain_after"),
        Index("idx_sessions_patient", "patient_id"),
        Index("idx_sessions_date", "completed_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    patient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    series_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("therapy_series.id", ondelete="CASCADE"), nullable=False
    )
    session_number: Mapped[int] = mapped_column(Integer, nullable=False)
    pain_before: Mapped[int] = mapped_column(Integer, nullable=False)
    pain_after: Mapped[int] = mapped_column(Integer, nullable=False)
    comments: Mapped[str] = mapped_column(Text, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    patient: Mapped["Patient"] = relationship(back_populates="sessions")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_user", "user_id", "is_read"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"
    __table_args__ = (
        Index("idx_analytics_user_date", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
