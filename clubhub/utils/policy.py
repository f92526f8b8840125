"""
Authorization policy

A single capability check taking (identity, action, resource) replaces
per-route role branching. Ownership facts about the event or club travel in a
``ResourceContext`` built by the service that loaded the record.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from clubhub.core.errors import ForbiddenError


class Role(str, Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class Action(str, Enum):
    register = "register"
    unregister = "unregister"
    submit_feedback = "submit_feedback"
    mark_helpful = "mark_helpful"
    view_own_feedback = "view_own_feedback"
    mark_attendance = "mark_attendance"
    respond_feedback = "respond_feedback"
    create_event = "create_event"
    change_status = "change_status"
    change_capacity = "change_capacity"
    view_roster = "view_roster"
    export = "export"
    view_event_analytics = "view_event_analytics"
    list_event_feedback = "list_event_feedback"
    flag_feedback = "flag_feedback"
    archive_feedback = "archive_feedback"
    sentiment_overview = "sentiment_overview"
    club_analytics = "club_analytics"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role


@dataclass(frozen=True)
class ResourceContext:
    """Ownership facts of an event (and its club)"""
    organizer_id: Optional[str] = None
    co_organizer_ids: FrozenSet[str] = field(default_factory=frozenset)
    club_coordinator_id: Optional[str] = None

    def is_staff(self, user_id: str) -> bool:
        return (
            user_id == self.organizer_id
            or user_id in self.co_organizer_ids
            or (self.club_coordinator_id is not None and user_id == self.club_coordinator_id)
        )


_ANYONE = {
    Action.register,
    Action.unregister,
    Action.submit_feedback,
    Action.mark_helpful,
    Action.view_own_feedback,
}
_STAFF_OR_ADMIN = {Action.mark_attendance, Action.respond_feedback}
_STAFF_TEACHER_OR_ADMIN = {
    Action.view_roster,
    Action.export,
    Action.view_event_analytics,
    Action.list_event_feedback,
}
_ADMIN_ONLY = {Action.archive_feedback, Action.sentiment_overview}


def is_allowed(identity: Identity, action: Action, resource: Optional[ResourceContext] = None) -> bool:
    if identity.role == Role.admin or action in _ANYONE:
        return True
    if action in _ADMIN_ONLY:
        return False

    resource = resource or ResourceContext()
    is_teacher = identity.role == Role.teacher

    if action in _STAFF_OR_ADMIN:
        return resource.is_staff(identity.user_id)
    if action in _STAFF_TEACHER_OR_ADMIN:
        return is_teacher or resource.is_staff(identity.user_id)
    if action == Action.create_event:
        return is_teacher
    if action in (Action.change_status, Action.change_capacity):
        return identity.user_id == resource.organizer_id
    if action == Action.flag_feedback:
        return is_teacher
    if action == Action.club_analytics:
        return is_teacher or (
            resource.club_coordinator_id is not None and identity.user_id == resource.club_coordinator_id
        )
    return False


def authorize(identity: Identity, action: Action, resource: Optional[ResourceContext] = None) -> None:
    """Raise ``ForbiddenError`` unless ``identity`` may perform ``action``"""
    if not is_allowed(identity, action, resource):
        raise ForbiddenError(
            "Not authorized to perform this action",
            action=action.value,
            user_id=identity.user_id,
            role=identity.role.value,
        )
