"""
Read-only analytics over feedback and roster data.

The aggregations are plain functions over lists of documents: filter by time
window, group, then rank or sort. ``AnalyticsService`` only loads the records
and checks who may see them.
"""

import logging
import re
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from clubhub.core.errors import NotFoundError, ValidationError
from clubhub.schemas.analytics import (
    ClubSummary, DateRange, GroupBy, SentimentClassStats, TimeBucket, TopicCount,
)
from clubhub.schemas.event import EventDocument
from clubhub.schemas.feedback import FeedbackDocument, SentimentClass
from clubhub.services.repositories import ClubRepo, EventRepo, FeedbackRepo
from clubhub.services.roster_service import RosterService, available_spots
from clubhub.utils.policy import Action, Identity, ResourceContext, authorize
from clubhub.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "this", "that", "with", "from", "they", "were",
    "been", "have", "their", "would", "could", "should",
})
TOPIC_TOKEN = re.compile(r"[a-z]{4,}")
DETAILED_THRESHOLD = 100
BUCKET_FORMATS = {
    GroupBy.day: "%Y-%m-%d",
    GroupBy.week: "%Y-W%U",
    GroupBy.month: "%Y-%m",
}
RATING_DIMENSIONS = ("overall", "organization", "content", "venue", "speakers")


def _mean(values: List[float], digits: int = 1) -> float:
    return round(sum(values) / len(values), digits) if values else 0.0

def _percent(part: int, whole: int) -> float:
    return round(100 * part / whole, 2) if whole else 0.0

# -------- Pure aggregations --------

def summarize_feedback(records: Iterable[FeedbackDocument]) -> ClubSummary:
    """Counts, per-dimension means and distributions; all zero for no records"""
    records = list(records)
    summary = ClubSummary(total_feedback=len(records))
    for dimension in RATING_DIMENSIONS:
        values = [getattr(r.rating, dimension) for r in records if getattr(r.rating, dimension) is not None]
        setattr(summary, f"average_{dimension}_rating", _mean(values))
    for record in records:
        summary.sentiment_counts[record.sentiment.classification.value] += 1
        summary.rating_counts[record.rating.overall] += 1
    return summary

def rating_statistics(records: Iterable[FeedbackDocument]) -> Dict[str, Any]:
    records = list(records)
    distribution = {star: 0 for star in range(1, 6)}
    for record in records:
        distribution[record.rating.overall] += 1
    return {
        "total": len(records),
        "average_rating": _mean([r.rating.overall for r in records]),
        "rating_distribution": distribution,
        "anonymous_count": sum(1 for r in records if r.anonymous),
    }

def extract_topics(records: Iterable[FeedbackDocument], limit: int = 10) -> List[TopicCount]:
    """Most frequent words; ties keep the order words were first seen"""
    counts: "OrderedDict[str, int]" = OrderedDict()
    for record in records:
        text = f"{record.feedback.what_worked_well} {record.feedback.improvements or ''}".lower()
        for token in text.split():
            if TOPIC_TOKEN.fullmatch(token) and token not in STOP_WORDS:
                counts[token] = counts.get(token, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [TopicCount(topic=topic, count=count) for topic, count in ranked[:limit]]

def bucket_key(moment: datetime, group_by: GroupBy) -> str:
    return moment.strftime(BUCKET_FORMATS[group_by])

def build_time_series(records: Iterable[FeedbackDocument], group_by: GroupBy) -> List[TimeBucket]:
    buckets: Dict[str, List[FeedbackDocument]] = {}
    for record in records:
        buckets.setdefault(bucket_key(record.created_at, group_by), []).append(record)

    series = []
    for period in sorted(buckets):
        items = buckets[period]
        classes = Counter(r.sentiment.classification for r in items)
        series.append(TimeBucket(
            period=period,
            total_feedback=len(items),
            average_rating=_mean([r.rating.overall for r in items]),
            positive_count=classes[SentimentClass.positive],
            neutral_count=classes[SentimentClass.neutral],
            negative_count=classes[SentimentClass.negative],
            anonymous_count=sum(1 for r in items if r.anonymous),
            detailed_count=sum(1 for r in items if len(r.feedback.what_worked_well) > DETAILED_THRESHOLD),
        ))
    return series

def sentiment_breakdown(records: Iterable[FeedbackDocument]) -> Dict[str, Any]:
    records = list(records)
    by_class = []
    for classification in SentimentClass:
        items = [r for r in records if r.sentiment.classification == classification]
        if not items:
            continue
        by_class.append(SentimentClassStats(
            classification=classification.value,
            count=len(items),
            average_score=_mean([r.sentiment.score for r in items], 2),
            average_rating=_mean([r.rating.overall for r in items]),
            average_confidence=_mean([r.sentiment.confidence for r in items], 2),
        ))
    return {
        "breakdown": by_class,
        "overall": {
            "total_feedback": len(records),
            "average_score": _mean([r.sentiment.score for r in records], 2),
            "average_confidence": _mean([r.sentiment.confidence for r in records], 2),
        },
    }

def attendance_report(events: Iterable[EventDocument]) -> Dict[str, Any]:
    rows = []
    monthly: Dict[str, Dict[str, int]] = {}
    total_registered = total_attended = 0
    for event in events:
        registered = event.statistics.total_registrations
        attended = event.statistics.total_attendance
        total_registered += registered
        total_attended += attended
        rows.append({
            "event_id": event.id,
            "title": event.title,
            "event_date": event.event_date,
            "status": event.status.value,
            "registered": registered,
            "attended": attended,
            "attendance_rate": _percent(attended, registered),
            "no_shows": registered - attended,
        })
        month = monthly.setdefault(event.event_date.strftime("%Y-%m"), {"events": 0, "registered": 0, "attended": 0})
        month["events"] += 1
        month["registered"] += registered
        month["attended"] += attended

    return {
        "events": rows,
        "overall": {
            "total_events": len(rows),
            "total_registered": total_registered,
            "total_attended": total_attended,
            "attendance_rate": _percent(total_attended, total_registered),
        },
        "monthly": [
            {"month": month, **stats, "attendance_rate": _percent(stats["attended"], stats["registered"])}
            for month, stats in sorted(monthly.items())
        ],
    }


class AnalyticsService:
    """Service for aggregate reporting"""

    @staticmethod
    def _club_context(db: Session, club_id: str) -> ResourceContext:
        club = ClubRepo.get(db, club_id)
        if club is None:
            raise NotFoundError("Club", club_id)
        return ResourceContext(club_coordinator_id=club.get("coordinator_id"))

    @staticmethod
    def _authorize_club(db: Session, identity: Identity, club_id: Optional[str]) -> None:
        ctx = AnalyticsService._club_context(db, club_id) if club_id else None
        authorize(identity, Action.club_analytics, ctx)

    @staticmethod
    def club_summary(db: Session, identity: Identity, club_id: str, date_range: Optional[DateRange] = None) -> ClubSummary:
        AnalyticsService._authorize_club(db, identity, club_id)
        date_range = date_range or DateRange()
        records = FeedbackRepo.list(db, club_id=club_id, since=date_range.start, until=date_range.end)
        return summarize_feedback(records)

    @staticmethod
    def trending_topics(
        db: Session,
        identity: Identity,
        timeframe_days: int = 30,
        limit: int = 10,
        club_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[TopicCount]:
        AnalyticsService._authorize_club(db, identity, club_id)
        if timeframe_days < 1 or limit < 1:
            raise ValidationError("Timeframe and limit must be positive", timeframe_days=timeframe_days, limit=limit)
        since = (now or utcnow()) - timedelta(days=timeframe_days)
        records = FeedbackRepo.list(db, club_id=club_id, since=since, include_archived=False)
        return extract_topics(records, limit)

    @staticmethod
    def time_series(
        db: Session,
        identity: Identity,
        timeframe_days: int = 30,
        group_by: str = "day",
        club_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[TimeBucket]:
        try:
            grouping = GroupBy(group_by)
        except ValueError:
            raise ValidationError(
                f"Unknown grouping: {group_by}",
                errors=[{"field": "group_by", "message": "must be one of day, week, month"}],
            )
        AnalyticsService._authorize_club(db, identity, club_id)
        since = (now or utcnow()) - timedelta(days=timeframe_days)
        records = FeedbackRepo.list(db, club_id=club_id, since=since)
        return build_time_series(records, grouping)

    @staticmethod
    def event_analytics(db: Session, identity: Identity, event_id: str) -> Dict[str, Any]:
        event = EventRepo.get(db, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        authorize(identity, Action.view_event_analytics, RosterService.context_for(db, event))

        by_day = Counter(entry.registered_at.strftime("%Y-%m-%d") for entry in event.registered)
        stats = event.statistics
        records = FeedbackRepo.list(db, event_id=event_id, include_archived=False)
        return {
            "event_id": event.id,
            "title": event.title,
            "status": event.status.value,
            "registrations_by_day": [{"date": day, "count": by_day[day]} for day in sorted(by_day)],
            "total_registrations": stats.total_registrations,
            "total_attendance": stats.total_attendance,
            "attendance_rate": stats.attendance_rate,
            "no_show_rate": round(100 - stats.attendance_rate, 2) if stats.total_registrations else 0.0,
            "available_spots": available_spots(event),
            "waitlist_count": len(event.waitlist),
            "views": stats.views,
            "feedback": summarize_feedback(records),
        }

    @staticmethod
    def club_attendance_report(db: Session, identity: Identity, club_id: str, date_range: Optional[DateRange] = None) -> Dict[str, Any]:
        AnalyticsService._authorize_club(db, identity, club_id)
        date_range = date_range or DateRange()
        events = EventRepo.list_by_club(db, club_id, date_range.start, date_range.end)
        report = attendance_report(events)
        report["club_id"] = club_id
        return report

    @staticmethod
    def sentiment_overview(
        db: Session,
        identity: Identity,
        timeframe_days: int = 30,
        club_id: Optional[str] = None,
        event_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        authorize(identity, Action.sentiment_overview)
        since = (now or utcnow()) - timedelta(days=timeframe_days)
        records = FeedbackRepo.list(db, club_id=club_id, event_id=event_id, since=since, include_archived=False)
        return sentiment_breakdown(records)
