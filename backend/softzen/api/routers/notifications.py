from typing import List

from fastapi import APIRouter, Depends

from softzen.api.deps import Retry, get_db, get_retry
from softzen.db import Database
from softzen.errors import NotFoundError
from softzen.models import User
from softzen.schemas import MessageResponse, NotificationOut
from softzen.services import notification_service
from softzen.services.auth_service import get_current_user

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(get_current_user),
):
    return await retry(lambda: notification_service.list_for_user(db, current_user.id))


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: int,
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(get_current_user),
):
    updated = await retry(lambda: notification_service.mark_read(db, notification_id, current_user.id))
    if not updated:
        raise NotFoundError("Notification not found")
    return {"message": "Notification marked as read"}
