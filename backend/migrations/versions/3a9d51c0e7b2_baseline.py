"""Baseline schema

Revision ID: 3a9d51c0e7b2
Revises:
Create Date: 2026-10-19 09:12:04.118532
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a9d51c0e7b2'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('name', sa.String(50), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.CheckConstraint("role in ('instructor','patient','admin')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'patients',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('condition', sa.String(200), nullable=True),
        sa.Column('instructor_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_series', sa.JSON(), nullable=True),
        sa.Column('assigned_series_id', sa.BigInteger(), nullable=True),
        sa.Column('current_session', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )
    op.create_index('idx_patients_instructor', 'patients', ['instructor_id'])
    op.create_index('idx_patients_email', 'patients', ['email'])
    op.create_index('ix_patients_assigned_series_id', 'patients', ['assigned_series_id'])

    op.create_table(
        'therapy_series',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('therapy_type', sa.String(50), nullable=False),
        sa.Column('postures', sa.JSON(), nullable=False),
        sa.Column('total_sessions', sa.Integer(), nullable=False),
        sa.Column('instructor_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.CheckConstraint('total_sessions between 1 and 100', name='ck_series_total_sessions'),
    )
    op.create_index('idx_series_instructor', 'therapy_series', ['instructor_id'])

    op.create_table(
        'sessions',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('series_id', sa.BigInteger(), sa.ForeignKey('therapy_series.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_number', sa.Integer(), nullable=False),
        sa.Column('pain_before', sa.Integer(), nullable=False),
        sa.Column('pain_after', sa.Integer(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('pain_before between 0 and 10', name='ck_sessions_pain_before'),
        sa.CheckConstraint('pain_after between 0 and 10', name='ck_sessions_pain_after'),
    )
    op.create_index('idx_sessions_patient', 'sessions', ['patient_id'])
    op.create_index('idx_sessions_date', 'sessions', ['completed_at'])

    op.create_table(
        'notifications',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_notifications_user', 'notifications', ['user_id', 'is_read'])

    op.create_table(
        'analytics_events',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_analytics_user_date', 'analytics_events', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('analytics_events')
    op.drop_table('notifications')
    op.drop_table('sessions')
    op.drop_table('therapy_series')
    op.drop_table('patients')
    op.drop_table('users')
