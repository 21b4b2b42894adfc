from __future__ import annotations
from typing import List, Optional

import structlog
from sqlalchemy import select, update

from softzen.db import Database
from softzen.models import Notification, User

logger = structlog.get_logger(__name__)

NOTIFICATION_LIMIT = 20


async def create_notification(db: Database, user_id: int, type_: str, title: str, message: str) -> Notification:
    async with db.session() as session:
        notification = Notification(user_id=user_id, type=type_, title=title, message=message, is_read=False)
        session.add(notification)
        await session.commit()
        await session.refresh(notification)
        return notification


async def notify(db: Database, user_id: int, type_: str, title: str, message: str) -> Optional[Notification]:
    """Best-effort variant of :func:`create_notification`; never raises."""
    try:
        return await create_notification(db, user_id, type_, title, message)
    except Exception as exc:
        logger.warning("notification_failed", user_id=user_id, type=type_, error=str(exc))
        return None


async def notify_email(db: Database, email: str, type_: str, title: str, message: str) -> Optional[Notification]:
    """Notify the active user account registered with ``email``, if there is one."""
    try:
        async with db.session() as session:
            res = await session.execute(
                select(User.id).where(User.email == email, User.is_active.is_(True))
            )
            user_id = res.scalar_one_or_none()
    except Exception as exc:
        logger.warning("notification_lookup_failed", type=type_, error=str(exc))
        return None
    if user_id is None:
        return None
    return await notify(db, user_id, type_, title, message)


async def list_for_user(db: Database, user_id: int, limit: int = NOTIFICATION_LIMIT) -> List[Notification]:
    async with db.session() as session:
        res = await session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(res.scalars().all())


async def mark_read(db: Database, notification_id: int, user_id: int) -> bool:
    async with db.session() as session:
        res = await session.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        await session.commit()
        return res.rowcount > 0
