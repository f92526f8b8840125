"""
Feedback collection, moderation and responses
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from clubhub.core.errors import ConflictError, ForbiddenError, NotFoundError, UnavailableError, ValidationError
from clubhub.schemas.event import EventStatus
from clubhub.schemas.feedback import (
    FeedbackDocument, FeedbackStatus, FeedbackSubmit, FlagRequest, HelpfulResult, Moderation,
    RespondRequest, ResponseRecord, SubmissionResult,
)
from clubhub.services.analytics_service import rating_statistics
from clubhub.services.repositories import EventRepo, FeedbackRepo
from clubhub.services.roster_service import RosterService
from clubhub.services.sentiment import analyze_sentiment
from clubhub.utils.policy import Action, Identity, authorize
from clubhub.utils.responses import field_errors
from clubhub.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SORT_KEYS = {
    "newest": (lambda f: f.created_at, True),
    "oldest": (lambda f: f.created_at, False),
    "rating_high": (lambda f: (f.rating.overall, f.created_at), True),
    "rating_low": (lambda f: (f.rating.overall, f.created_at), False),
    "helpful": (lambda f: (f.helpful.count, f.created_at), True),
}


def validate_payload(model: Type[ModelT], data: Any) -> ModelT:
    """Validate raw input into ``model``, reporting every offending field"""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid input", errors=field_errors(exc.errors())) from exc


class FeedbackService:
    """Service for feedback operations"""

    @staticmethod
    def _load(db: Session, feedback_id: str) -> FeedbackDocument:
        doc = FeedbackRepo.get(db, feedback_id)
        if doc is None:
            raise NotFoundError("Feedback", feedback_id)
        return doc

    @staticmethod
    def submit(db: Session, identity: Identity, payload: Any, now: Optional[datetime] = None) -> SubmissionResult:
        """Create one feedback record for a completed event the caller attended.

        Checks run in order: event exists, event completed, caller attended,
        then the store rejects a second live record from the same submitter.
        Anonymous records store no submitter and are never rejected as
        duplicates.
        """
        payload = validate_payload(FeedbackSubmit, payload)
        authorize(identity, Action.submit_feedback)

        event = EventRepo.get(db, payload.event_id)
        if event is None:
            raise NotFoundError("Event", payload.event_id)
        if event.status != EventStatus.completed:
            raise UnavailableError(
                "Feedback can only be submitted for completed events",
                event_id=event.id,
                status=event.status.value,
            )
        if not any(a.participant_id == identity.user_id for a in event.attendance):
            raise ForbiddenError(
                "Only participants who attended the event can submit feedback",
                event_id=event.id,
                user_id=identity.user_id,
            )

        now = now or utcnow()
        doc = FeedbackDocument(
            id=uuid.uuid4().hex,
            event_id=event.id,
            club_id=event.club_id,
            submitted_by=None if payload.anonymous else identity.user_id,
            anonymous=payload.anonymous,
            rating=payload.rating,
            feedback=payload.feedback,
            suggestions=payload.suggestions,
            sentiment=analyze_sentiment(payload.feedback.what_worked_well, payload.feedback.improvements, now),
            created_at=now,
            updated_at=now,
        )
        FeedbackRepo.insert(db, doc)
        logger.info(
            "Feedback %s submitted for event %s (%s, %s)",
            doc.id, event.id, "anonymous" if doc.anonymous else doc.submitted_by,
            doc.sentiment.classification.value,
        )
        return SubmissionResult(
            feedback_id=doc.id,
            anonymous=doc.anonymous,
            submitted_at=doc.created_at,
            sentiment=doc.sentiment,
        )

    @staticmethod
    def respond(db: Session, identity: Identity, feedback_id: str, payload: Any, now: Optional[datetime] = None) -> ResponseRecord:
        payload = validate_payload(RespondRequest, payload)
        feedback = FeedbackService._load(db, feedback_id)
        event = EventRepo.get(db, feedback.event_id)
        if event is None:
            raise NotFoundError("Event", feedback.event_id)
        authorize(identity, Action.respond_feedback, RosterService.context_for(db, event))

        record = ResponseRecord(content=payload.response, responded_by=identity.user_id, responded_at=now or utcnow())
        if feedback.status != FeedbackStatus.archived and feedback.response is None:
            if FeedbackRepo.set_response(db, feedback_id, record):
                logger.info("Feedback %s answered by %s", feedback_id, identity.user_id)
                return record
            feedback = FeedbackService._load(db, feedback_id)

        if feedback.status == FeedbackStatus.archived:
            raise UnavailableError("Feedback has been archived", feedback_id=feedback_id)
        raise ConflictError(
            "Feedback already has a response",
            feedback_id=feedback_id,
            responded_by=feedback.response.responded_by if feedback.response else None,
        )

    @staticmethod
    def flag(db: Session, identity: Identity, feedback_id: str, payload: Any, now: Optional[datetime] = None) -> Moderation:
        """Mark feedback inappropriate; a later flag replaces reason and time"""
        payload = validate_payload(FlagRequest, payload)
        authorize(identity, Action.flag_feedback)
        feedback = FeedbackService._load(db, feedback_id)

        moderation = Moderation(
            inappropriate=True,
            spam=payload.spam or feedback.moderation.spam,
            flagged_by=identity.user_id,
            flagged_at=now or utcnow(),
            reason=payload.reason,
        )
        if not FeedbackRepo.set_moderation(db, feedback_id, moderation):
            raise NotFoundError("Feedback", feedback_id)
        logger.info("Feedback %s flagged by %s", feedback_id, identity.user_id)
        return moderation

    @staticmethod
    def mark_helpful(db: Session, identity: Identity, feedback_id: str) -> HelpfulResult:
        authorize(identity, Action.mark_helpful)
        feedback = FeedbackService._load(db, feedback_id)
        if feedback.status == FeedbackStatus.archived:
            raise UnavailableError("Feedback has been archived", feedback_id=feedback_id)

        marked, count = FeedbackRepo.toggle_helpful(db, feedback_id, identity.user_id)
        return HelpfulResult(feedback_id=feedback_id, helpful_count=count, user_marked_helpful=marked)

    @staticmethod
    def archive(db: Session, identity: Identity, feedback_id: str) -> FeedbackDocument:
        """Soft delete; frees the submitter's slot for this event"""
        authorize(identity, Action.archive_feedback)
        feedback = FeedbackService._load(db, feedback_id)
        if feedback.status != FeedbackStatus.archived:
            FeedbackRepo.archive(db, feedback_id)
            logger.info("Feedback %s archived by %s", feedback_id, identity.user_id)
        return FeedbackService._load(db, feedback_id)

    @staticmethod
    def list_event_feedback(
        db: Session,
        identity: Identity,
        event_id: str,
        include_anonymous: bool = True,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "newest",
    ) -> Dict[str, Any]:
        event = EventRepo.get(db, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        authorize(identity, Action.list_event_feedback, RosterService.context_for(db, event))
        if sort_by not in SORT_KEYS:
            raise ValidationError(
                f"Unknown sort order: {sort_by}",
                errors=[{"field": "sort_by", "message": f"must be one of {', '.join(SORT_KEYS)}"}],
            )
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive", page=page, limit=limit)

        records = FeedbackRepo.list(db, event_id=event_id, include_archived=False, include_anonymous=include_anonymous)
        key, reverse = SORT_KEYS[sort_by]
        ordered = sorted(records, key=key, reverse=reverse)
        start = (page - 1) * limit
        total = len(ordered)

        return {
            "feedback": [f.public_view() for f in ordered[start:start + limit]],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
            "statistics": rating_statistics(records),
        }

    @staticmethod
    def my_feedback(db: Session, identity: Identity) -> Dict[str, Any]:
        """Non-anonymous feedback the caller submitted, newest first"""
        authorize(identity, Action.view_own_feedback)
        records = FeedbackRepo.list(db, submitted_by=identity.user_id, include_archived=False)
        records.sort(key=lambda f: f.created_at, reverse=True)
        return {
            "feedback": [f.public_view() for f in records],
            "statistics": rating_statistics(records),
        }

    @staticmethod
    def export_rows_source(db: Session, identity: Identity, event_id: Optional[str] = None, club_id: Optional[str] = None) -> List[FeedbackDocument]:
        """Records for a feedback export, authorized against the event when given"""
        if event_id:
            event = EventRepo.get(db, event_id)
            if event is None:
                raise NotFoundError("Event", event_id)
            authorize(identity, Action.export, RosterService.context_for(db, event))
        else:
            authorize(identity, Action.export)
        return FeedbackRepo.list(db, event_id=event_id, club_id=club_id, include_archived=False)
