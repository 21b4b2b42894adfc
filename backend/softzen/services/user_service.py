from __future__ import annotations
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from softzen.db import Database
from softzen.errors import ValidationError
from softzen.models import User


async def get_by_email(db: Database, email: str) -> Optional[User]:
    async with db.session() as session:
        res = await session.execute(select(User).where(User.email == email))
        return res.scalar_one_or_none()


async def get_by_id(db: Database, user_id: int) -> Optional[User]:
    async with db.session() as session:
        return await session.get(User, user_id)


async def create_user(db: Database, *, email: str, password_hash: str, name: str, role: str) -> User:
    async with db.session() as session:
        user = User(email=email, password_hash=password_hash, name=name, role=role, is_active=True)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ValidationError("A user with this email already exists", "email", "ALREADY_EXISTS")
        await session.refresh(user)
        return user


async def touch_last_login(db: Database, user_id: int) -> None:
    async with db.session() as session:
        await session.execute(update(User).where(User.id == user_id).values(last_login=func.now()))
        await session.commit()


async def deactivate(db: Database, user_id: int) -> bool:
    async with db.session() as session:
        res = await session.execute(
            update(User).where(User.id == user_id, User.is_active.is_(True)).values(is_active=False)
        )
        await session.commit()
        return res.rowcount > 0


async def delete_user(db: Database, user_id: int) -> bool:
    """Hard delete; patients, series, sessions and notifications cascade."""
    async with db.session() as session:
        res = await session.execute(delete(User).where(User.id == user_id))
        await session.commit()
        return res.rowcount > 0
