from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from softzen.api.deps import Retry, get_db, get_retry, get_settings
from softzen.config import Settings
from softzen.db import Database
from softzen.errors import AuthError
from softzen.models import User
from softzen.services import analytics_service, user_service

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error=False: a missing token is reported as our own 401, not FastAPI's
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        return False


def hash_password(password):
    if not isinstance(password, (str, bytes)):
        raise TypeError("Password must be a string or bytes.")
    return pwd_context.hash(password)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def token_for_user(user: User, settings: Settings) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role}, settings)


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthError.forbidden("Invalid or expired token")
    if payload.get("sub") is None:
        raise AuthError.forbidden("Invalid or expired token")
    return payload


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
) -> User:
    """Resolve the bearer token into an active :class:`User`."""
    if not token:
        raise AuthError.missing()
    payload = decode_access_token(token, settings)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthError.forbidden("Invalid or expired token")

    user = await retry(lambda: user_service.get_by_id(db, user_id))
    if user is None or not user.is_active:
        raise AuthError.forbidden("Invalid or expired token")

    structlog.contextvars.bind_contextvars(user_id=user.id)
    await analytics_service.log_event(
        db, user.id, "api_request", {"endpoint": request.url.path, "method": request.method}
    )
    return user


def require_role(*roles: str) -> Callable[..., Any]:
    """Dependency factory: the current user must hold one of ``roles``."""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthError.forbidden()
        return current_user

    return checker


require_instructor = require_role("instructor")
require_patient = require_role("patient")
require_admin = require_role("admin")
