"""
Summary API endpoints.
"""

from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional

from smsledger.dependencies import get_db
from smsledger.schemas.summary import MonthTrend, PeriodSummary
from smsledger.services.aggregation_service import month_bounds, monthly_trends, summarize

router = APIRouter(prefix="/summary", tags=["summary"])


def _zone(tz_offset_minutes: Optional[int]):
    if tz_offset_minutes is None:
        return timezone.utc
    return timezone(timedelta(minutes=tz_offset_minutes))


@router.get("", response_model=PeriodSummary)
def get_summary(
    user_id: str = Query(..., min_length=1),
    month: Optional[str] = Query(None, description="YYYY-MM format"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    tz_offset_minutes: Optional[int] = Query(None, ge=-720, le=840),
    db: Session = Depends(get_db)
):
    """
    Debit/credit totals for a month, or for [start, end).
    Defaults to the current month.
    """
    tz = _zone(tz_offset_minutes)
    try:
        if start is not None or end is not None:
            if start is None or end is None:
                raise ValueError("start and end must be given together")
            period_start = start if start.tzinfo else start.replace(tzinfo=tz)
            period_end = end if end.tzinfo else end.replace(tzinfo=tz)
        else:
            period_start, period_end = month_bounds(month, tz)
        return summarize(db, user_id, period_start, period_end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        raise HTTPException(status_code=503, detail=f"Ledger storage error: {e}")


@router.get("/trends", response_model=list[MonthTrend])
def get_trends(
    user_id: str = Query(..., min_length=1),
    months: int = Query(6, ge=1, le=24),
    tz_offset_minutes: Optional[int] = Query(None, ge=-720, le=840),
    db: Session = Depends(get_db)
):
    """Monthly totals, oldest first"""
    try:
        return monthly_trends(db, user_id, months, tz=_zone(tz_offset_minutes))
    except SQLAlchemyError as e:
        raise HTTPException(status_code=503, detail=f"Ledger storage error: {e}")
