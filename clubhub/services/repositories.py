"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Each store operation has a ``_sql`` and a ``_fs`` variant plus a dispatcher
that picks one from configuration. Callers only ever see ``EventDocument`` and
``FeedbackDocument`` values, never ORM rows or Firestore snapshots.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as gexc
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from clubhub.core.config import settings
from clubhub.core.errors import ConflictError, StoreError, UnavailableError
from clubhub.models import Club, Event, Feedback, HelpfulVote
from clubhub.schemas.event import EventDocument
from clubhub.schemas.feedback import (
    FeedbackDocument, FeedbackStatus, FeedbackText, Helpful, Moderation, Rating,
    ResponseRecord, Sentiment,
)
from clubhub.services.firebase_client import get_firestore_client
from clubhub.utils.timeutil import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


@contextmanager
def store_call(db: Optional[Session] = None, what: str = "store operation"):
    """Translate backend exceptions into the domain taxonomy.

    Timeouts and contention become retryable ``UnavailableError``; anything
    else the store raises is an infrastructure ``StoreError``.
    """
    try:
        yield
    except OperationalError as exc:
        if db is not None:
            db.rollback()
        logger.warning("Transient database failure during %s: %s", what, exc)
        raise UnavailableError("Persistence store temporarily unavailable", retryable=True, operation=what) from exc
    except (gexc.DeadlineExceeded, gexc.ServiceUnavailable, gexc.Aborted) as exc:
        logger.warning("Transient Firestore failure during %s: %s", what, exc)
        raise UnavailableError("Persistence store temporarily unavailable", retryable=True, operation=what) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        logger.error("Database failure during %s: %s", what, exc)
        raise StoreError(f"Database failure during {what}", cause=exc) from exc
    except gexc.GoogleAPICallError as exc:
        logger.error("Firestore failure during %s: %s", what, exc)
        raise StoreError(f"Firestore failure during {what}", cause=exc) from exc


def _roster_fields(doc: EventDocument) -> Dict[str, Any]:
    """The mutable part of an event, as stored"""
    return {
        "status": doc.status.value,
        "capacity": doc.capacity,
        "registered": [e.model_dump(mode="json") for e in doc.registered],
        "waitlist": [e.model_dump(mode="json") for e in doc.waitlist],
        "attendance": [a.model_dump(mode="json") for a in doc.attendance],
        "statistics": doc.statistics.model_dump(exclude={"views"}),
    }


# -------- Club repository --------

class ClubRepo:
    @staticmethod
    def get_sql(db: Session, club_id: str) -> Optional[Dict[str, Any]]:
        with store_call(db, "club lookup"):
            club = db.get(Club, club_id)
        if not club:
            return None
        return {"id": club.id, "name": club.name, "category": club.category, "coordinator_id": club.coordinator_id}

    @staticmethod
    def get_fs(club_id: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        with store_call(what="club lookup"):
            snap = fs.collection("clubs").document(club_id).get()
        if not snap.exists:
            return None
        data = snap.to_dict()
        data["id"] = snap.id
        return data

    @staticmethod
    def get(db: Optional[Session], club_id: str) -> Optional[Dict[str, Any]]:
        if use_firestore():
            return ClubRepo.get_fs(club_id)
        return ClubRepo.get_sql(db, club_id)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def _to_document(row: Event) -> EventDocument:
        statistics = dict(row.statistics or {})
        statistics["views"] = row.views or 0
        return EventDocument(
            id=row.id,
            club_id=row.club_id,
            organizer_id=row.organizer_id,
            title=row.title,
            status=row.status,
            capacity=row.capacity,
            registration_deadline=ensure_utc(row.registration_deadline),
            event_date=ensure_utc(row.event_date),
            co_organizers=row.co_organizers or [],
            registered=row.registered or [],
            waitlist=row.waitlist or [],
            attendance=row.attendance or [],
            statistics=statistics,
            version=row.version,
            created_at=ensure_utc(row.created_at),
        )

    @staticmethod
    def get_sql(db: Session, event_id: str) -> Optional[EventDocument]:
        stmt = select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        with store_call(db, "event read"):
            row = db.execute(stmt).scalar_one_or_none()
        return EventRepo._to_document(row) if row else None

    @staticmethod
    def create_sql(db: Session, doc: EventDocument) -> EventDocument:
        row = Event(
            id=doc.id,
            club_id=doc.club_id,
            organizer_id=doc.organizer_id,
            title=doc.title,
            registration_deadline=doc.registration_deadline,
            event_date=doc.event_date,
            co_organizers=[c.model_dump(mode="json") for c in doc.co_organizers],
            views=0,
            version=doc.version,
            created_at=doc.created_at,
            **_roster_fields(doc),
        )
        with store_call(db, "event create"):
            db.add(row)
            db.commit()
            db.refresh(row)
        return EventRepo._to_document(row)

    @staticmethod
    def swap_sql(db: Session, event_id: str, expected_version: int, doc: EventDocument) -> bool:
        """Write the roster only if nobody else did since ``expected_version`` was read"""
        stmt = (
            update(Event)
            .where(Event.id == event_id, Event.version == expected_version)
            .values(version=expected_version + 1, updated_at=utcnow(), **_roster_fields(doc))
            .execution_options(synchronize_session=False)
        )
        with store_call(db, "event roster write"):
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                return False
            db.commit()
        return True

    @staticmethod
    def increment_views_sql(db: Session, event_id: str) -> None:
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .values(views=Event.views + 1)
            .execution_options(synchronize_session=False)
        )
        with store_call(db, "event view count"):
            db.execute(stmt)
            db.commit()

    @staticmethod
    def list_by_club_sql(
        db: Session,
        club_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[EventDocument]:
        stmt = select(Event).where(Event.club_id == club_id)
        if start:
            stmt = stmt.where(Event.event_date >= start)
        if end:
            stmt = stmt.where(Event.event_date <= end)
        stmt = stmt.order_by(Event.event_date.desc()).execution_options(populate_existing=True)
        with store_call(db, "club events read"):
            rows = db.execute(stmt).scalars().all()
        return [EventRepo._to_document(r) for r in rows]

    # Firestore shape: collection "events/{event_id}", roster fields inline
    @staticmethod
    def _from_snapshot(snap) -> EventDocument:
        data = snap.to_dict()
        data["id"] = snap.id
        statistics = dict(data.get("statistics") or {})
        statistics["views"] = data.get("views", 0)
        data["statistics"] = statistics
        return EventDocument.model_validate(data)

    @staticmethod
    def get_fs(event_id: str) -> Optional[EventDocument]:
        fs = get_firestore_client()
        with store_call(what="event read"):
            snap = fs.collection("events").document(event_id).get()
        return EventRepo._from_snapshot(snap) if snap.exists else None

    @staticmethod
    def create_fs(doc: EventDocument) -> EventDocument:
        fs = get_firestore_client()
        data = doc.model_dump(mode="json", exclude={"id", "statistics"})
        data.update(_roster_fields(doc))
        data["views"] = 0
        with store_call(what="event create"):
            fs.collection("events").document(doc.id).create(data)
        return doc

    @staticmethod
    def swap_fs(event_id: str, expected_version: int, doc: EventDocument) -> bool:
        fs = get_firestore_client()
        ref = fs.collection("events").document(event_id)
        fields = _roster_fields(doc)
        fields["version"] = expected_version + 1
        fields["updated_at"] = utcnow().isoformat()

        @firestore.transactional
        def _swap(transaction) -> bool:
            snap = ref.get(transaction=transaction)
            if not snap.exists or snap.get("version") != expected_version:
                return False
            transaction.update(ref, fields)
            return True

        with store_call(what="event roster write"):
            return _swap(fs.transaction())

    @staticmethod
    def increment_views_fs(event_id: str) -> None:
        fs = get_firestore_client()
        with store_call(what="event view count"):
            fs.collection("events").document(event_id).update({"views": firestore.Increment(1)})

    @staticmethod
    def list_by_club_fs(club_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[EventDocument]:
        fs = get_firestore_client()
        with store_call(what="club events read"):
            snaps = fs.collection("events").where("club_id", "==", club_id).get()
        docs = [EventRepo._from_snapshot(s) for s in snaps]
        docs = [d for d in docs if (not start or d.event_date >= start) and (not end or d.event_date <= end)]
        return sorted(docs, key=lambda d: d.event_date, reverse=True)

    # -------- dispatchers --------

    @staticmethod
    def get(db: Optional[Session], event_id: str) -> Optional[EventDocument]:
        if use_firestore():
            return EventRepo.get_fs(event_id)
        return EventRepo.get_sql(db, event_id)

    @staticmethod
    def create(db: Optional[Session], doc: EventDocument) -> EventDocument:
        if use_firestore():
            return EventRepo.create_fs(doc)
        return EventRepo.create_sql(db, doc)

    @staticmethod
    def swap(db: Optional[Session], event_id: str, expected_version: int, doc: EventDocument) -> bool:
        if use_firestore():
            return EventRepo.swap_fs(event_id, expected_version, doc)
        return EventRepo.swap_sql(db, event_id, expected_version, doc)

    @staticmethod
    def increment_views(db: Optional[Session], event_id: str) -> None:
        if use_firestore():
            EventRepo.increment_views_fs(event_id)
        else:
            EventRepo.increment_views_sql(db, event_id)

    @staticmethod
    def list_by_club(db: Optional[Session], club_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[EventDocument]:
        if use_firestore():
            return EventRepo.list_by_club_fs(club_id, start, end)
        return EventRepo.list_by_club_sql(db, club_id, start, end)


# -------- Feedback repository --------

def _duplicate_feedback(doc: FeedbackDocument) -> ConflictError:
    return ConflictError(
        "You have already submitted feedback for this event",
        event_id=doc.event_id,
        submitted_by=doc.submitted_by,
        constraint="one_feedback_per_participant",
    )


class FeedbackRepo:
    @staticmethod
    def _to_document(row: Feedback) -> FeedbackDocument:
        voters = [v.voter_id for v in row.votes]
        response = None
        if row.response_content:
            response = ResponseRecord(
                content=row.response_content,
                responded_by=row.responded_by,
                responded_at=ensure_utc(row.responded_at),
            )
        return FeedbackDocument(
            id=row.id,
            event_id=row.event_id,
            club_id=row.club_id,
            submitted_by=row.submitted_by,
            anonymous=row.anonymous,
            rating=Rating(
                overall=row.rating_overall,
                organization=row.rating_organization,
                content=row.rating_content,
                venue=row.rating_venue,
                speakers=row.rating_speakers,
            ),
            feedback=FeedbackText(
                what_worked_well=row.what_worked_well,
                improvements=row.improvements,
                additional_comments=row.additional_comments,
            ),
            suggestions=row.suggestions,
            sentiment=Sentiment(
                score=row.sentiment_score,
                classification=row.sentiment_classification,
                confidence=row.sentiment_confidence,
                analyzed_at=ensure_utc(row.sentiment_analyzed_at),
            ),
            moderation=Moderation(
                inappropriate=row.flag_inappropriate,
                spam=row.flag_spam,
                flagged_by=row.flagged_by,
                flagged_at=ensure_utc(row.flagged_at),
                reason=row.flag_reason,
            ),
            response=response,
            helpful=Helpful(count=len(voters), users=voters),
            status=row.status,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )

    @staticmethod
    def _to_row(doc: FeedbackDocument) -> Feedback:
        return Feedback(
            id=doc.id,
            event_id=doc.event_id,
            club_id=doc.club_id,
            submitted_by=doc.submitted_by,
            anonymous=doc.anonymous,
            rating_overall=doc.rating.overall,
            rating_organization=doc.rating.organization,
            rating_content=doc.rating.content,
            rating_venue=doc.rating.venue,
            rating_speakers=doc.rating.speakers,
            what_worked_well=doc.feedback.what_worked_well,
            improvements=doc.feedback.improvements,
            additional_comments=doc.feedback.additional_comments,
            suggestions=doc.suggestions.model_dump(mode="json") if doc.suggestions else None,
            sentiment_score=doc.sentiment.score,
            sentiment_classification=doc.sentiment.classification.value,
            sentiment_confidence=doc.sentiment.confidence,
            sentiment_analyzed_at=doc.sentiment.analyzed_at,
            status=doc.status.value,
            created_at=doc.created_at,
            updated_at=doc.created_at,
        )

    @staticmethod
    def insert_sql(db: Session, doc: FeedbackDocument) -> FeedbackDocument:
        """Insert; the partial unique index rejects a second live record per submitter"""
        row = FeedbackRepo._to_row(doc)
        with store_call(db, "feedback insert"):
            try:
                db.add(row)
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                logger.info("Duplicate feedback rejected for event %s by %s", doc.event_id, doc.submitted_by)
                raise _duplicate_feedback(doc) from exc
        return doc

    @staticmethod
    def get_sql(db: Session, feedback_id: str) -> Optional[FeedbackDocument]:
        stmt = (
            select(Feedback)
            .where(Feedback.id == feedback_id)
            .options(selectinload(Feedback.votes))
            .execution_options(populate_existing=True)
        )
        with store_call(db, "feedback read"):
            row = db.execute(stmt).scalar_one_or_none()
        return FeedbackRepo._to_document(row) if row else None

    @staticmethod
    def set_moderation_sql(db: Session, feedback_id: str, moderation: Moderation) -> bool:
        stmt = (
            update(Feedback)
            .where(Feedback.id == feedback_id)
            .values(
                flag_inappropriate=moderation.inappropriate,
                flag_spam=moderation.spam,
                flagged_by=moderation.flagged_by,
                flagged_at=moderation.flagged_at,
                flag_reason=moderation.reason,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        with store_call(db, "feedback flag"):
            result = db.execute(stmt)
            db.commit()
        return result.rowcount == 1

    @staticmethod
    def set_response_sql(db: Session, feedback_id: str, response: ResponseRecord) -> bool:
        """Attach a response unless one already exists; returns whether it was applied"""
        stmt = (
            update(Feedback)
            .where(
                Feedback.id == feedback_id,
                Feedback.response_content.is_(None),
                Feedback.status != FeedbackStatus.archived.value,
            )
            .values(
                response_content=response.content,
                responded_by=response.responded_by,
                responded_at=response.responded_at,
                status=FeedbackStatus.responded.value,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        with store_call(db, "feedback response"):
            result = db.execute(stmt)
            db.commit()
        return result.rowcount == 1

    @staticmethod
    def archive_sql(db: Session, feedback_id: str) -> bool:
        stmt = (
            update(Feedback)
            .where(Feedback.id == feedback_id, Feedback.status != FeedbackStatus.archived.value)
            .values(status=FeedbackStatus.archived.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with store_call(db, "feedback archive"):
            result = db.execute(stmt)
            db.commit()
        return result.rowcount == 1

    @staticmethod
    def toggle_helpful_sql(db: Session, feedback_id: str, voter_id: str) -> Tuple[bool, int]:
        """Add the vote, or remove it if this voter already voted"""
        with store_call(db, "helpful vote"):
            try:
                db.add(HelpfulVote(feedback_id=feedback_id, voter_id=voter_id))
                db.commit()
                marked = True
            except IntegrityError:
                db.rollback()
                db.execute(
                    delete(HelpfulVote).where(
                        HelpfulVote.feedback_id == feedback_id,
                        HelpfulVote.voter_id == voter_id,
                    )
                )
                db.commit()
                marked = False
            count = db.execute(
                select(func.count(HelpfulVote.id)).where(HelpfulVote.feedback_id == feedback_id)
            ).scalar_one()
        return marked, count

    @staticmethod
    def list_sql(
        db: Session,
        club_id: Optional[str] = None,
        event_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        include_archived: bool = True,
        include_anonymous: bool = True,
    ) -> List[FeedbackDocument]:
        stmt = select(Feedback).options(selectinload(Feedback.votes))
        if club_id:
            stmt = stmt.where(Feedback.club_id == club_id)
        if event_id:
            stmt = stmt.where(Feedback.event_id == event_id)
        if submitted_by:
            stmt = stmt.where(Feedback.submitted_by == submitted_by)
        if since:
            stmt = stmt.where(Feedback.created_at >= since)
        if until:
            stmt = stmt.where(Feedback.created_at <= until)
        if not include_archived:
            stmt = stmt.where(Feedback.status != FeedbackStatus.archived.value)
        if not include_anonymous:
            stmt = stmt.where(Feedback.anonymous.is_(False))
        stmt = stmt.order_by(Feedback.created_at.asc()).execution_options(populate_existing=True)
        with store_call(db, "feedback list"):
            rows = db.execute(stmt).scalars().all()
        return [FeedbackRepo._to_document(r) for r in rows]

    # Firestore shape: "feedback/{id}" plus "feedback_keys/{event}__{submitter}"
    # guarding one live record per submitter.
    @staticmethod
    def _key_id(event_id: str, submitted_by: str) -> str:
        return f"{event_id}__{submitted_by}"

    @staticmethod
    def _from_snapshot(snap) -> FeedbackDocument:
        data = snap.to_dict()
        data["id"] = snap.id
        users = data.pop("helpful_users", []) or []
        data["helpful"] = {"count": len(users), "users": users}
        return FeedbackDocument.model_validate(data)

    @staticmethod
    def insert_fs(doc: FeedbackDocument) -> FeedbackDocument:
        fs = get_firestore_client()
        data = doc.model_dump(mode="json", exclude={"id", "helpful"})
        data["helpful_users"] = []
        batch = fs.batch()
        if doc.submitted_by:
            key_ref = fs.collection("feedback_keys").document(FeedbackRepo._key_id(doc.event_id, doc.submitted_by))
            batch.create(key_ref, {"feedback_id": doc.id})
        batch.set(fs.collection("feedback").document(doc.id), data)
        with store_call(what="feedback insert"):
            try:
                batch.commit()
            except gexc.Conflict as exc:
                raise _duplicate_feedback(doc) from exc
        return doc

    @staticmethod
    def get_fs(feedback_id: str) -> Optional[FeedbackDocument]:
        fs = get_firestore_client()
        with store_call(what="feedback read"):
            snap = fs.collection("feedback").document(feedback_id).get()
        return FeedbackRepo._from_snapshot(snap) if snap.exists else None

    @staticmethod
    def set_moderation_fs(feedback_id: str, moderation: Moderation) -> bool:
        fs = get_firestore_client()
        with store_call(what="feedback flag"):
            try:
                fs.collection("feedback").document(feedback_id).update({
                    "moderation": moderation.model_dump(mode="json"),
                    "updated_at": utcnow().isoformat(),
                })
            except gexc.NotFound:
                return False
        return True

    @staticmethod
    def set_response_fs(feedback_id: str, response: ResponseRecord) -> bool:
        fs = get_firestore_client()
        ref = fs.collection("feedback").document(feedback_id)

        @firestore.transactional
        def _respond(transaction) -> bool:
            snap = ref.get(transaction=transaction)
            if not snap.exists:
                return False
            data = snap.to_dict()
            if data.get("response") or data.get("status") == FeedbackStatus.archived.value:
                return False
            transaction.update(ref, {
                "response": response.model_dump(mode="json"),
                "status": FeedbackStatus.responded.value,
                "updated_at": utcnow().isoformat(),
            })
            return True

        with store_call(what="feedback response"):
            return _respond(fs.transaction())

    @staticmethod
    def archive_fs(feedback_id: str) -> bool:
        fs = get_firestore_client()
        current = FeedbackRepo.get_fs(feedback_id)
        if current is None or current.status == FeedbackStatus.archived:
            return False
        batch = fs.batch()
        batch.update(fs.collection("feedback").document(feedback_id), {
            "status": FeedbackStatus.archived.value,
            "updated_at": utcnow().isoformat(),
        })
        if current.submitted_by:
            batch.delete(fs.collection("feedback_keys").document(FeedbackRepo._key_id(current.event_id, current.submitted_by)))
        with store_call(what="feedback archive"):
            batch.commit()
        return True

    @staticmethod
    def toggle_helpful_fs(feedback_id: str, voter_id: str) -> Tuple[bool, int]:
        fs = get_firestore_client()
        ref = fs.collection("feedback").document(feedback_id)
        with store_call(what="helpful vote"):
            users = ref.get().get("helpful_users") or []
            marked = voter_id not in users
            transform = firestore.ArrayUnion([voter_id]) if marked else firestore.ArrayRemove([voter_id])
            ref.update({"helpful_users": transform})
            count = len(ref.get().get("helpful_users") or [])
        return marked, count

    @staticmethod
    def list_fs(
        club_id: Optional[str] = None,
        event_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        include_archived: bool = True,
        include_anonymous: bool = True,
    ) -> List[FeedbackDocument]:
        fs = get_firestore_client()
        query = fs.collection("feedback")
        if club_id:
            query = query.where("club_id", "==", club_id)
        if event_id:
            query = query.where("event_id", "==", event_id)
        if submitted_by:
            query = query.where("submitted_by", "==", submitted_by)
        with store_call(what="feedback list"):
            snaps = query.get()
        docs = [FeedbackRepo._from_snapshot(s) for s in snaps]
        docs = [
            d for d in docs
            if (not since or d.created_at >= since)
            and (not until or d.created_at <= until)
            and (include_archived or d.status != FeedbackStatus.archived)
            and (include_anonymous or not d.anonymous)
        ]
        return sorted(docs, key=lambda d: d.created_at)

    # -------- dispatchers --------

    @staticmethod
    def insert(db: Optional[Session], doc: FeedbackDocument) -> FeedbackDocument:
        if use_firestore():
            return FeedbackRepo.insert_fs(doc)
        return FeedbackRepo.insert_sql(db, doc)

    @staticmethod
    def get(db: Optional[Session], feedback_id: str) -> Optional[FeedbackDocument]:
        if use_firestore():
            return FeedbackRepo.get_fs(feedback_id)
        return FeedbackRepo.get_sql(db, feedback_id)

    @staticmethod
    def set_moderation(db: Optional[Session], feedback_id: str, moderation: Moderation) -> bool:
        if use_firestore():
            return FeedbackRepo.set_moderation_fs(feedback_id, moderation)
        return FeedbackRepo.set_moderation_sql(db, feedback_id, moderation)

    @staticmethod
    def set_response(db: Optional[Session], feedback_id: str, response: ResponseRecord) -> bool:
        if use_firestore():
            return FeedbackRepo.set_response_fs(feedback_id, response)
        return FeedbackRepo.set_response_sql(db, feedback_id, response)

    @staticmethod
    def archive(db: Optional[Session], feedback_id: str) -> bool:
        if use_firestore():
            return FeedbackRepo.archive_fs(feedback_id)
        return FeedbackRepo.archive_sql(db, feedback_id)

    @staticmethod
    def toggle_helpful(db: Optional[Session], feedback_id: str, voter_id: str) -> Tuple[bool, int]:
        if use_firestore():
            return FeedbackRepo.toggle_helpful_fs(feedback_id, voter_id)
        return FeedbackRepo.toggle_helpful_sql(db, feedback_id, voter_id)

    @staticmethod
    def list(db: Optional[Session], **filters) -> List[FeedbackDocument]:
        if use_firestore():
            return FeedbackRepo.list_fs(**filters)
        return FeedbackRepo.list_sql(db, **filters)
