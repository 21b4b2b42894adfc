from __future__ import annotations
from fastapi import APIRouter, Depends

import structlog

from softzen.api.deps import Retry, get_db, get_retry, get_settings
from softzen.config import Settings
from softzen.db import Database
from softzen.errors import AuthError, ValidationError
from softzen.schemas import AuthResponse, LoginRequest, RegisterRequest, UserPublic
from softzen.services import analytics_service, user_service
from softzen.services.auth_service import hash_password, token_for_user, verify_password
from softzen.validators import entity_steps, validate_fields

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/register", response_model=AuthResponse)
async def register_user(
    user_in: RegisterRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    retry: Retry = Depends(get_retry),
):
    values = validate_fields(entity_steps("user"), user_in.model_dump()).raise_first()
    # admins are provisioned out of band (seed script, migrations)
    if values["role"] == "admin":
        raise ValidationError("Administrator accounts cannot be self-registered", "role", "INVALID_ROLE")

    existing_user = await retry(lambda: user_service.get_by_email(db, values["email"]))
    if existing_user:
        raise ValidationError("A user with this email already exists", "email", "ALREADY_EXISTS")

    password_hash = hash_password(values["password"])
    user = await retry(lambda: user_service.create_user(
        db,
        email=values["email"],
        password_hash=password_hash,
        name=values["name"],
        role=values["role"],
    ))
    logger.info("user_registered", user_id=user.id, role=user.role)
    await analytics_service.log_event(db, user.id, "user_registered", {"role": user.role})

    return AuthResponse(
        token=token_for_user(user, settings),
        user=UserPublic.model_validate(user),
        message="User registered successfully",
    )


@router.post("/login", response_model=AuthResponse)
async def login_for_access_token(
    form: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    retry: Retry = Depends(get_retry),
):
    values = validate_fields(entity_steps("login"), form.model_dump()).raise_first()
    email = values["email"].strip().lower() if isinstance(values["email"], str) else values["email"]

    user = await retry(lambda: user_service.get_by_email(db, email))
    if (
        not user
        or not user.is_active
        or not isinstance(values["password"], str)
        or not verify_password(values["password"], user.password_hash)
    ):
        raise AuthError("Invalid email or password", status_code=401)

    await retry(lambda: user_service.touch_last_login(db, user.id))
    await analytics_service.log_event(db, user.id, "user_login")
    user = await retry(lambda: user_service.get_by_id(db, user.id))

    return AuthResponse(
        token=token_for_user(user, settings),
        user=UserPublic.model_validate(user),
        message="Login successful",
    )
