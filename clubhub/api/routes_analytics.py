"""
Analytics API routes
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from clubhub.core.config import settings
from clubhub.core.db import get_db
from clubhub.schemas.analytics import DateRange
from clubhub.services.analytics_service import AnalyticsService
from clubhub.utils.policy import Identity
from clubhub.utils.security import get_current_identity
from clubhub.utils.responses import success_response
from clubhub.utils.timeutil import ensure_utc

router = APIRouter()

def _date_range(start: Optional[datetime], end: Optional[datetime]) -> DateRange:
    return DateRange(start=ensure_utc(start), end=ensure_utc(end))

@router.get("/analytics/clubs/{club_id}/summary")
async def club_summary(
    club_id: str,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Feedback summary for one club"""
    summary = await run_in_threadpool(
        AnalyticsService.club_summary, db, identity, club_id, _date_range(start_date, end_date)
    )
    return success_response(message="Club summary retrieved", data=summary.model_dump())

@router.get("/analytics/trending")
async def trending_topics(
    timeframe: int = Query(settings.ANALYTICS_TIMEFRAME_DAYS, ge=1, le=365),
    limit: int = Query(10, ge=1, le=50),
    club_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Most mentioned words in recent feedback"""
    topics = await run_in_threadpool(AnalyticsService.trending_topics, db, identity, timeframe, limit, club_id)
    return success_response(
        message="Trending topics retrieved",
        data={"timeframe": f"{timeframe} days", "topics": [t.model_dump() for t in topics]}
    )

@router.get("/analytics/timeseries")
async def time_series(
    timeframe: int = Query(settings.ANALYTICS_TIMEFRAME_DAYS, ge=1, le=365),
    group_by: str = Query("day"),
    club_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Feedback counts and ratings per day, week or month"""
    series = await run_in_threadpool(AnalyticsService.time_series, db, identity, timeframe, group_by, club_id)
    return success_response(
        message="Time series retrieved",
        data={"group_by": group_by, "series": [b.model_dump() for b in series]}
    )

@router.get("/analytics/clubs/{club_id}/attendance")
async def club_attendance(
    club_id: str,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Attendance report across a club's events"""
    report = await run_in_threadpool(
        AnalyticsService.club_attendance_report, db, identity, club_id, _date_range(start_date, end_date)
    )
    return success_response(message="Attendance report retrieved", data=report)

@router.get("/analytics/sentiment")
async def sentiment_overview(
    timeframe: int = Query(settings.ANALYTICS_TIMEFRAME_DAYS, ge=1, le=365),
    club_id: Optional[str] = Query(None),
    event_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Sentiment breakdown (admin)"""
    data = await run_in_threadpool(AnalyticsService.sentiment_overview, db, identity, timeframe, club_id, event_id)
    return success_response(message="Sentiment analysis retrieved", data=data)
