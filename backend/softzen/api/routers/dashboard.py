from fastapi import APIRouter, Depends, Request

from softzen.api.deps import Retry, cached_json, get_cache, get_db, get_retry, get_settings
from softzen.cache import ResponseCache
from softzen.config import Settings
from softzen.db import Database
from softzen.models import User
from softzen.services import dashboard_service
from softzen.services.auth_service import require_instructor

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/analytics")
async def get_dashboard_analytics(
    request: Request,
    db: Database = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    async def build():
        return await retry(
            lambda: dashboard_service.instructor_dashboard(db, current_user.id),
            name="instructor_dashboard",
        )

    return await cached_json(cache, request, current_user.id, build, ttl=settings.dashboard_cache_ttl)
