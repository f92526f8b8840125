"""
Roster management: registration, waitlist promotion, attendance and the
event status state machine.

Every mutation is a pure function over an ``EventDocument`` draft, applied
inside ``RosterService._mutate``: read the event, apply the change to a copy,
then compare-and-swap it back keyed on the event's ``version``. A lost race
re-reads and re-applies the whole change, so capacity checks and the append
they guard always see the same roster.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from clubhub.core.config import settings
from clubhub.core.errors import ConflictError, NotFoundError, UnavailableError
from clubhub.schemas.event import (
    AssignedStatus, AttendanceRecord, AttendanceResult, AttendanceType, AttendanceUpdate,
    EventCreate, EventDocument, EventStatistics, EventStatus,
    RegistrationResult, RegistrationStatus, RosterEntry, UnregistrationResult, WaitlistEntry,
)
from clubhub.services.repositories import ClubRepo, EventRepo
from clubhub.utils.policy import Action, Identity, ResourceContext, Role, authorize
from clubhub.utils.timeutil import ensure_utc, utcnow

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {EventStatus.completed, EventStatus.cancelled}
OPEN_FOR_REGISTRATION = {EventStatus.published, EventStatus.upcoming}
FORWARD_ORDER = [EventStatus.published, EventStatus.upcoming, EventStatus.ongoing, EventStatus.completed]

# -------- Pure roster helpers --------

def active_entries(doc: EventDocument) -> List[RosterEntry]:
    return [e for e in doc.registered if e.status != RegistrationStatus.cancelled]

def find_active(doc: EventDocument, participant_id: str) -> Optional[RosterEntry]:
    for entry in doc.registered:
        if entry.participant_id == participant_id and entry.status != RegistrationStatus.cancelled:
            return entry
    return None

def compute_statistics(doc: EventDocument) -> EventStatistics:
    """Recompute the derived counters from the roster"""
    total_registrations = len(active_entries(doc))
    total_attendance = len(doc.attendance)
    rate = round(100 * total_attendance / total_registrations, 2) if total_registrations else 0.0
    return EventStatistics(
        total_registrations=total_registrations,
        total_attendance=total_attendance,
        attendance_rate=rate,
        views=doc.statistics.views,
    )

def available_spots(doc: EventDocument) -> Optional[int]:
    if doc.capacity is None:
        return None
    return max(0, doc.capacity - len(active_entries(doc)))

def _has_free_slot(doc: EventDocument) -> bool:
    return doc.capacity is None or len(active_entries(doc)) < doc.capacity

def _ensure_not_closed(doc: EventDocument, action: str) -> None:
    if doc.status in TERMINAL_STATUSES:
        raise UnavailableError(
            f"Cannot {action}: event is {doc.status.value}",
            event_id=doc.id,
            status=doc.status.value,
        )

def promote_from_waitlist(doc: EventDocument, now: datetime) -> List[str]:
    """Move waitlisted participants into the roster, oldest first, while a slot is free"""
    promoted = []
    doc.waitlist.sort(key=lambda w: w.enqueued_at)
    while doc.waitlist and _has_free_slot(doc):
        head = doc.waitlist.pop(0)
        doc.registered.append(RosterEntry(participant_id=head.participant_id, registered_at=now))
        promoted.append(head.participant_id)
    return promoted

def apply_register(doc: EventDocument, participant_id: str, now: datetime) -> Tuple[AssignedStatus, Optional[int]]:
    if doc.status not in OPEN_FOR_REGISTRATION:
        raise UnavailableError(
            "Event is not open for registration",
            event_id=doc.id,
            status=doc.status.value,
        )
    if now >= doc.registration_deadline:
        raise UnavailableError(
            "Registration deadline has passed",
            event_id=doc.id,
            registration_deadline=doc.registration_deadline.isoformat(),
        )
    if find_active(doc, participant_id):
        raise ConflictError(
            "Already registered for this event",
            event_id=doc.id,
            participant_id=participant_id,
        )
    if any(w.participant_id == participant_id for w in doc.waitlist):
        raise ConflictError(
            "Already on the waitlist for this event",
            event_id=doc.id,
            participant_id=participant_id,
        )

    if _has_free_slot(doc):
        doc.registered.append(RosterEntry(participant_id=participant_id, registered_at=now))
        return AssignedStatus.registered, None

    doc.waitlist.append(WaitlistEntry(participant_id=participant_id, enqueued_at=now))
    return AssignedStatus.waitlisted, len(doc.waitlist)

def apply_unregister(doc: EventDocument, participant_id: str, now: datetime) -> Tuple[bool, Optional[str]]:
    """Returns (removed, promoted participant). Absent participants are a no-op."""
    _ensure_not_closed(doc, "unregister")

    entry = find_active(doc, participant_id)
    if entry is not None:
        if entry.status == RegistrationStatus.attended:
            raise ConflictError(
                "Cannot unregister after attendance has been marked",
                event_id=doc.id,
                participant_id=participant_id,
            )
        entry.status = RegistrationStatus.cancelled
        promoted = promote_from_waitlist(doc, now)
        return True, (promoted[0] if promoted else None)

    before = len(doc.waitlist)
    doc.waitlist = [w for w in doc.waitlist if w.participant_id != participant_id]
    return len(doc.waitlist) != before, None

def apply_attendance(
    doc: EventDocument,
    participant_ids: Iterable[str],
    marker_id: str,
    now: datetime,
    attendance_type: AttendanceType = AttendanceType.full,
    notes: Optional[str] = None,
) -> List[str]:
    """Replace the attendance set; ids not currently registered are dropped"""
    _ensure_not_closed(doc, "mark attendance")

    for entry in doc.registered:
        if entry.status == RegistrationStatus.attended:
            entry.status = RegistrationStatus.registered

    accepted = []
    records = []
    for participant_id in dict.fromkeys(participant_ids):
        entry = find_active(doc, participant_id)
        if entry is None:
            continue
        entry.status = RegistrationStatus.attended
        accepted.append(participant_id)
        records.append(AttendanceRecord(
            participant_id=participant_id,
            marked_by=marker_id,
            marked_at=now,
            attendance_type=attendance_type,
            notes=notes,
        ))
    doc.attendance = records
    return accepted

def _find_attendance(doc: EventDocument, participant_id: str) -> AttendanceRecord:
    for record in doc.attendance:
        if record.participant_id == participant_id:
            return record
    raise NotFoundError("Attendance record", participant_id, event_id=doc.id)

def apply_attendance_update(doc: EventDocument, participant_id: str, changes: AttendanceUpdate) -> AttendanceRecord:
    _ensure_not_closed(doc, "update attendance")
    record = _find_attendance(doc, participant_id)
    for name, value in changes.model_dump(exclude_unset=True).items():
        if isinstance(value, datetime):
            value = ensure_utc(value)
        setattr(record, name, value)
    return record

def apply_attendance_removal(doc: EventDocument, participant_id: str) -> None:
    _ensure_not_closed(doc, "remove attendance")
    record = _find_attendance(doc, participant_id)
    doc.attendance.remove(record)
    entry = find_active(doc, participant_id)
    if entry is not None:
        entry.status = RegistrationStatus.registered

def check_transition(current: EventStatus, new: EventStatus) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if new == EventStatus.cancelled:
        return True
    if current == EventStatus.draft:
        return new == EventStatus.published
    if new in FORWARD_ORDER and current in FORWARD_ORDER:
        return FORWARD_ORDER.index(new) > FORWARD_ORDER.index(current)
    return False

def apply_capacity(doc: EventDocument, capacity: Optional[int], now: datetime) -> List[str]:
    _ensure_not_closed(doc, "change capacity")
    active = len(active_entries(doc))
    if capacity is not None and capacity < active:
        raise ConflictError(
            "Capacity cannot be lower than the number of registered participants",
            event_id=doc.id,
            capacity=capacity,
            registered=active,
        )
    doc.capacity = capacity
    return promote_from_waitlist(doc, now)

def resource_context(doc: EventDocument, club: Optional[Dict[str, Any]]) -> ResourceContext:
    return ResourceContext(
        organizer_id=doc.organizer_id,
        co_organizer_ids=frozenset(c.user_id for c in doc.co_organizers),
        club_coordinator_id=(club or {}).get("coordinator_id"),
    )

def roster_payload(doc: EventDocument) -> Dict[str, Any]:
    """Full roster with statistics, for staff"""
    data = doc.model_dump(mode="json")
    data["statistics"]["available_spots"] = available_spots(doc)
    data["statistics"]["waitlist_count"] = len(doc.waitlist)
    return data


class RosterService:
    """Service for event roster operations"""

    @staticmethod
    def _load(db: Session, event_id: str) -> EventDocument:
        doc = EventRepo.get(db, event_id)
        if doc is None:
            raise NotFoundError("Event", event_id)
        return doc

    @staticmethod
    def context_for(db: Session, doc: EventDocument) -> ResourceContext:
        return resource_context(doc, ClubRepo.get(db, doc.club_id))

    @staticmethod
    def load_authorized(db: Session, identity: Identity, action: Action, event_id: str) -> EventDocument:
        doc = RosterService._load(db, event_id)
        authorize(identity, action, RosterService.context_for(db, doc))
        return doc

    @staticmethod
    def _mutate(
        db: Session,
        event_id: str,
        change: Callable[[EventDocument], Any],
        max_retries: Optional[int] = None,
    ) -> Tuple[EventDocument, Any]:
        """Apply ``change`` to the latest event and compare-and-swap it back"""
        attempts = max_retries or settings.ROSTER_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            current = RosterService._load(db, event_id)
            draft = current.model_copy(deep=True)
            outcome = change(draft)
            draft.statistics = compute_statistics(draft)
            if draft == current:
                return current, outcome
            if EventRepo.swap(db, event_id, current.version, draft):
                draft.version = current.version + 1
                return draft, outcome
            logger.debug("Roster write for event %s lost a race (attempt %d)", event_id, attempt)

        logger.warning("Roster write for event %s gave up after %d attempts", event_id, attempts)
        raise UnavailableError(
            "Event roster is busy, please retry",
            retryable=True,
            event_id=event_id,
            attempts=attempts,
        )

    # -------- Event lifecycle --------

    @staticmethod
    def create_event(db: Session, identity: Identity, payload: EventCreate, now: Optional[datetime] = None) -> EventDocument:
        authorize(identity, Action.create_event)
        if ClubRepo.get(db, payload.club_id) is None:
            raise NotFoundError("Club", payload.club_id)

        doc = EventDocument(
            id=uuid.uuid4().hex,
            club_id=payload.club_id,
            organizer_id=identity.user_id,
            title=payload.title,
            capacity=payload.capacity,
            registration_deadline=ensure_utc(payload.registration_deadline),
            event_date=ensure_utc(payload.event_date),
            co_organizers=payload.co_organizers,
            created_at=now or utcnow(),
        )
        created = EventRepo.create(db, doc)
        logger.info("Event %s created in club %s by %s", created.id, created.club_id, identity.user_id)
        return created

    @staticmethod
    def get_event(db: Session, identity: Identity, event_id: str) -> Dict[str, Any]:
        """Event details; views are counted for everyone but the event's staff"""
        doc = RosterService._load(db, event_id)
        ctx = RosterService.context_for(db, doc)
        is_staff = ctx.is_staff(identity.user_id)
        if not is_staff:
            EventRepo.increment_views(db, event_id)
            doc.statistics.views += 1

        data = roster_payload(doc)
        if not is_staff and identity.role != Role.admin:
            for key in ("registered", "waitlist", "attendance"):
                data.pop(key)
        entry = find_active(doc, identity.user_id)
        if entry is not None:
            data["my_status"] = entry.status.value
        elif any(w.participant_id == identity.user_id for w in doc.waitlist):
            data["my_status"] = AssignedStatus.waitlisted.value
        else:
            data["my_status"] = None
        return data

    @staticmethod
    def roster_view(db: Session, identity: Identity, event_id: str) -> Dict[str, Any]:
        doc = RosterService.load_authorized(db, identity, Action.view_roster, event_id)
        return roster_payload(doc)

    @staticmethod
    def transition_status(
        db: Session,
        identity: Identity,
        event_id: str,
        new_status: EventStatus,
        max_retries: Optional[int] = None,
    ) -> EventDocument:
        RosterService.load_authorized(db, identity, Action.change_status, event_id)

        def change(doc: EventDocument) -> EventStatus:
            previous = doc.status
            if previous == new_status:
                return previous
            if not check_transition(previous, new_status):
                raise UnavailableError(
                    f"Cannot change event status from {previous.value} to {new_status.value}",
                    event_id=doc.id,
                    status=previous.value,
                    requested=new_status.value,
                )
            doc.status = new_status
            return previous

        doc, previous = RosterService._mutate(db, event_id, change, max_retries)
        logger.info("Event %s status %s -> %s", event_id, previous.value, doc.status.value)
        return doc

    @staticmethod
    def update_capacity(
        db: Session,
        identity: Identity,
        event_id: str,
        capacity: Optional[int],
        now: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> Tuple[EventDocument, List[str]]:
        RosterService.load_authorized(db, identity, Action.change_capacity, event_id)
        now = now or utcnow()
        doc, promoted = RosterService._mutate(db, event_id, lambda d: apply_capacity(d, capacity, now), max_retries)
        logger.info("Event %s capacity set to %s; promoted %s", event_id, capacity, promoted)
        return doc, promoted

    # -------- Participation --------

    @staticmethod
    def register(
        db: Session,
        identity: Identity,
        event_id: str,
        now: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> RegistrationResult:
        authorize(identity, Action.register)
        now = now or utcnow()
        participant_id = identity.user_id
        _, (assigned, position) = RosterService._mutate(
            db, event_id, lambda d: apply_register(d, participant_id, now), max_retries
        )
        logger.info("Participant %s %s for event %s", participant_id, assigned.value, event_id)
        return RegistrationResult(
            event_id=event_id,
            participant_id=participant_id,
            assigned_status=assigned,
            waitlist_position=position,
        )

    @staticmethod
    def unregister(
        db: Session,
        identity: Identity,
        event_id: str,
        now: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> UnregistrationResult:
        authorize(identity, Action.unregister)
        now = now or utcnow()
        participant_id = identity.user_id
        _, (removed, promoted) = RosterService._mutate(
            db, event_id, lambda d: apply_unregister(d, participant_id, now), max_retries
        )
        if removed:
            logger.info("Participant %s unregistered from event %s", participant_id, event_id)
        if promoted:
            logger.info("Participant %s promoted from waitlist for event %s", promoted, event_id)
        return UnregistrationResult(
            event_id=event_id,
            participant_id=participant_id,
            removed=removed,
            promoted=promoted,
        )

    # -------- Attendance --------

    @staticmethod
    def mark_attendance(
        db: Session,
        identity: Identity,
        event_id: str,
        participant_ids: List[str],
        attendance_type: AttendanceType = AttendanceType.full,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> AttendanceResult:
        RosterService.load_authorized(db, identity, Action.mark_attendance, event_id)
        now = now or utcnow()
        doc, accepted = RosterService._mutate(
            db,
            event_id,
            lambda d: apply_attendance(d, participant_ids, identity.user_id, now, attendance_type, notes),
            max_retries,
        )
        logger.info("Attendance for event %s marked by %s: %d attended", event_id, identity.user_id, len(accepted))
        return AttendanceResult(
            event_id=event_id,
            attended_count=doc.statistics.total_attendance,
            total_registered=doc.statistics.total_registrations,
            attendance_rate=doc.statistics.attendance_rate,
            attended=accepted,
        )

    @staticmethod
    def update_attendance_record(
        db: Session,
        identity: Identity,
        event_id: str,
        participant_id: str,
        changes: AttendanceUpdate,
        max_retries: Optional[int] = None,
    ) -> AttendanceRecord:
        RosterService.load_authorized(db, identity, Action.mark_attendance, event_id)
        _, record = RosterService._mutate(
            db, event_id, lambda d: apply_attendance_update(d, participant_id, changes), max_retries
        )
        logger.info("Attendance record of %s for event %s updated", participant_id, event_id)
        return record

    @staticmethod
    def remove_attendance(
        db: Session,
        identity: Identity,
        event_id: str,
        participant_id: str,
        max_retries: Optional[int] = None,
    ) -> EventStatistics:
        RosterService.load_authorized(db, identity, Action.mark_attendance, event_id)
        doc, _ = RosterService._mutate(
            db, event_id, lambda d: apply_attendance_removal(d, participant_id), max_retries
        )
        logger.info("Attendance record of %s for event %s removed", participant_id, event_id)
        return doc.statistics
