from __future__ import annotations
from typing import Any, Dict, Optional

import structlog

from softzen.db import Database
from softzen.models import AnalyticsEvent

logger = structlog.get_logger(__name__)


async def log_event(
    db: Database, user_id: Optional[int], event_type: str, event_data: Optional[Dict[str, Any]] = None
) -> bool:
    """Record a telemetry event. Failures are logged and swallowed."""
    try:
        async with db.session() as session:
            session.add(AnalyticsEvent(user_id=user_id, event_type=event_type, event_data=event_data or {}))
            await session.commit()
        return True
    except Exception as exc:
        logger.warning("analytics_event_failed", event_type=event_type, user_id=user_id, error=str(exc))
        return False
