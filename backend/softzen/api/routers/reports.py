from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from softzen.api.deps import Retry, get_db, get_retry
from softzen.db import Database
from softzen.errors import ValidationError
from softzen.models import User
from softzen.services import analytics_service, report_service
from softzen.services.auth_service import require_instructor

router = APIRouter(prefix="/api/reports", tags=["reports"])

REPORT_FORMATS = ("json", "csv")


@router.get("/export")
async def export_report(
    format: str = Query("json"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    db: Database = Depends(get_db),
    retry: Retry = Depends(get_retry),
    current_user: User = Depends(require_instructor),
):
    """
    Every session of the instructor's patients, newest first.

    The date range only applies when both ``dateFrom`` and ``dateTo`` are given;
    a bare ``YYYY-MM-DD`` for ``dateTo`` includes that whole day.
    """
    if format not in REPORT_FORMATS:
        raise ValidationError("Format must be json or csv", "format", "INVALID_VALUE")
    start = report_service.parse_report_date(date_from, "dateFrom")
    end = report_service.parse_report_date(date_to, "dateTo", end_of_day=True)

    rows = await retry(lambda: report_service.fetch_rows(db, current_user.id, start, end))
    await analytics_service.log_event(
        db, current_user.id, "report_exported", {"format": format, "rows": len(rows)}
    )

    generated_at = datetime.now(timezone.utc)
    if format == "csv":
        filename = f"softzen-report-{generated_at.strftime('%Y-%m-%d')}.csv"
        return Response(
            content=report_service.to_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return {
        "generated_at": generated_at.isoformat(),
        "instructor": {"id": current_user.id, "name": current_user.name, "email": current_user.email},
        "summary": report_service.summarize(rows),
        "sessions": rows,
    }
