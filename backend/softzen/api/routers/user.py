from fastapi import APIRouter, Depends

from softzen.api.deps import Retry, get_cache, get_db, get_retry
from softzen.cache import ResponseCache
from softzen.db import Database
from softzen.errors import NotFoundError
from softzen.models import User
from softzen.schemas import MessageResponse, UserPublic
from softzen.services import analytics_service, user_service
from softzen.services.auth_service import get_current_user, require_admin

router = APIRouter(prefix="/api", tags=["user"])


# [1] current user
@router.get("/me", response_model=UserPublic)
async def get_my_info(current_user: User = Depends(get_current_user)):
    return current_user


# [2] soft deactivation of the caller's own account
@router.delete("/me", response_model=MessageResponse)
async def deactivate_my_account(
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(get_current_user),
):
    await retry(lambda: user_service.deactivate(db, current_user.id))
    await analytics_service.log_event(db, current_user.id, "user_deactivated")
    return {"message": "Account deactivated"}


# [3] hard delete (admin only); owned rows cascade
@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
async def delete_user_account(
    user_id: int,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    retry: Retry = Depends(get_retry),
    admin: User = Depends(require_admin),
):
    deleted = await retry(lambda: user_service.delete_user(db, user_id))
    if not deleted:
        raise NotFoundError("User not found")
    cache.clear()
    await analytics_service.log_event(db, admin.id, "user_deleted", {"userId": user_id})
    return {"message": "User deleted"}
