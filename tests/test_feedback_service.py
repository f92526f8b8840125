"""
Tests for feedback submission, moderation, responses and helpful votes
"""

import threading
import pytest

from clubhub.core.errors import ConflictError, ForbiddenError, NotFoundError, UnavailableError, ValidationError
from clubhub.schemas.event import EventStatus
from clubhub.schemas.feedback import FeedbackStatus, SentimentClass
from clubhub.services.feedback_service import FeedbackService
from clubhub.services.repositories import FeedbackRepo
from clubhub.services.roster_service import RosterService

from conftest import ADMIN, CLUB_ID, COORDINATOR, ORGANIZER, OTHER_TEACHER, student


def payload(event_id, overall=4, text="This was a great and wonderful event", anonymous=False, **extra):
    data = {
        "event_id": event_id,
        "anonymous": anonymous,
        "rating": {"overall": overall},
        "feedback": {"what_worked_well": text},
    }
    data.update(extra)
    return data


def test_submit_feedback(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    assert result.anonymous is False
    assert result.sentiment.classification == SentimentClass.positive
    assert result.sentiment.score == pytest.approx(0.2)

    stored = FeedbackRepo.get(db_session, result.feedback_id)
    assert stored.club_id == CLUB_ID
    assert stored.submitted_by == "alice"
    assert stored.status == FeedbackStatus.submitted


def test_submit_unknown_event(db_session, club):
    with pytest.raises(NotFoundError):
        FeedbackService.submit(db_session, student("alice"), payload("missing"))


def test_submit_requires_completed_event(db_session, make_event):
    event = make_event(capacity=5)
    RosterService.register(db_session, student("alice"), event.id)
    RosterService.mark_attendance(db_session, ORGANIZER, event.id, ["alice"])

    with pytest.raises(UnavailableError) as exc_info:
        FeedbackService.submit(db_session, student("alice"), payload(event.id))
    assert exc_info.value.context["status"] == EventStatus.published.value


def test_submit_requires_attendance(db_session, attended_event):
    with pytest.raises(ForbiddenError):
        FeedbackService.submit(db_session, student("carol"), payload(attended_event.id))
    with pytest.raises(ForbiddenError):
        FeedbackService.submit(db_session, student("carol"), payload(attended_event.id, anonymous=True))


def test_duplicate_submission_conflicts(db_session, attended_event):
    FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    with pytest.raises(ConflictError) as exc_info:
        FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, overall=2))

    assert exc_info.value.context["event_id"] == attended_event.id
    records = FeedbackRepo.list(db_session, event_id=attended_event.id)
    assert len(records) == 1


def test_anonymous_submissions_are_not_unique(db_session, attended_event):
    first = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, anonymous=True))
    second = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, anonymous=True))
    named = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    assert first.feedback_id != second.feedback_id
    assert FeedbackRepo.get(db_session, first.feedback_id).submitted_by is None
    assert FeedbackRepo.get(db_session, named.feedback_id).submitted_by == "alice"


def test_archived_feedback_frees_the_slot(db_session, attended_event):
    first = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    FeedbackService.archive(db_session, ADMIN, first.feedback_id)

    second = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    assert second.feedback_id != first.feedback_id
    assert FeedbackRepo.get(db_session, first.feedback_id).status == FeedbackStatus.archived


def test_archive_is_admin_only(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    with pytest.raises(ForbiddenError):
        FeedbackService.archive(db_session, ORGANIZER, result.feedback_id)


@pytest.mark.parametrize("bad", [
    {"rating": {"overall": 6}},
    {"rating": {"overall": 3, "venue": 0}},
    {"feedback": {"what_worked_well": "   too short   "}},
    {"feedback": {"what_worked_well": "x" * 2001}},
    {"feedback": {"what_worked_well": "Long enough text", "additional_comments": "y" * 1001}},
    {"suggestions": {"preferred_format": "lecture"}},
])
def test_invalid_payload_is_rejected(db_session, attended_event, bad):
    data = payload(attended_event.id)
    data.update(bad)

    with pytest.raises(ValidationError) as exc_info:
        FeedbackService.submit(db_session, student("alice"), data)

    assert exc_info.value.errors
    assert FeedbackRepo.list(db_session, event_id=attended_event.id) == []


def test_text_is_trimmed(db_session, attended_event):
    result = FeedbackService.submit(
        db_session, student("alice"), payload(attended_event.id, text="   Solid hands-on session   ")
    )
    assert FeedbackRepo.get(db_session, result.feedback_id).feedback.what_worked_well == "Solid hands-on session"


def test_respond_once(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    record = FeedbackService.respond(
        db_session, ORGANIZER, result.feedback_id, {"response": "Thanks, we will keep the format."}
    )
    assert record.responded_by == ORGANIZER.user_id
    stored = FeedbackRepo.get(db_session, result.feedback_id)
    assert stored.status == FeedbackStatus.responded
    assert stored.response.content == "Thanks, we will keep the format."

    with pytest.raises(ConflictError):
        FeedbackService.respond(db_session, COORDINATOR, result.feedback_id, {"response": "A second reply here"})


def test_respond_requires_staff(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    with pytest.raises(ForbiddenError):
        FeedbackService.respond(db_session, OTHER_TEACHER, result.feedback_id, {"response": "Not my event though"})


def test_respond_to_archived_is_unavailable(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    FeedbackService.archive(db_session, ADMIN, result.feedback_id)

    with pytest.raises(UnavailableError):
        FeedbackService.respond(db_session, ORGANIZER, result.feedback_id, {"response": "Too late to answer"})


def test_respond_validates_length(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    with pytest.raises(ValidationError):
        FeedbackService.respond(db_session, ORGANIZER, result.feedback_id, {"response": "ok"})


def test_flag_overwrites(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    FeedbackService.flag(db_session, OTHER_TEACHER, result.feedback_id, {"reason": "Contains a personal attack"})
    moderation = FeedbackService.flag(
        db_session, ADMIN, result.feedback_id, {"reason": "Promotional link spam", "spam": True}
    )

    assert moderation.flagged_by == ADMIN.user_id
    stored = FeedbackRepo.get(db_session, result.feedback_id).moderation
    assert stored.inappropriate is True
    assert stored.spam is True
    assert stored.reason == "Promotional link spam"
    assert stored.flagged_by == ADMIN.user_id


def test_flag_is_for_teachers_and_admins(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))
    with pytest.raises(ForbiddenError):
        FeedbackService.flag(db_session, student("bob"), result.feedback_id, {"reason": "I simply disagree"})


def test_flag_unknown_feedback(db_session, club):
    with pytest.raises(NotFoundError):
        FeedbackService.flag(db_session, ADMIN, "missing", {"reason": "Does not exist at all"})


def test_helpful_toggle(db_session, attended_event):
    result = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id))

    first = FeedbackService.mark_helpful(db_session, student("bob"), result.feedback_id)
    other = FeedbackService.mark_helpful(db_session, student("carol"), result.feedback_id)
    again = FeedbackService.mark_helpful(db_session, student("bob"), result.feedback_id)

    assert (first.user_marked_helpful, first.helpful_count) == (True, 1)
    assert (other.user_marked_helpful, other.helpful_count) == (True, 2)
    assert (again.user_marked_helpful, again.helpful_count) == (False, 1)
    assert FeedbackRepo.get(db_session, result.feedback_id).helpful.users == ["carol"]


def test_list_event_feedback_hides_anonymous_submitters(db_session, attended_event):
    FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, overall=5))
    FeedbackService.submit(db_session, student("bob"), payload(attended_event.id, overall=2, anonymous=True))

    data = FeedbackService.list_event_feedback(db_session, ORGANIZER, attended_event.id, sort_by="rating_high")

    assert [f["rating"]["overall"] for f in data["feedback"]] == [5, 2]
    assert data["feedback"][1]["submitted_by"] is None
    assert "users" not in data["feedback"][0]["helpful"]
    assert data["statistics"]["average_rating"] == 3.5
    assert data["pagination"]["total"] == 2

    named_only = FeedbackService.list_event_feedback(db_session, ORGANIZER, attended_event.id, include_anonymous=False)
    assert named_only["pagination"]["total"] == 1


def test_list_event_feedback_pagination_and_sort(db_session, attended_event):
    FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, overall=5))
    FeedbackService.submit(db_session, student("bob"), payload(attended_event.id, overall=3))

    page = FeedbackService.list_event_feedback(db_session, ADMIN, attended_event.id, page=2, limit=1, sort_by="rating_low")

    assert page["pagination"]["pages"] == 2
    assert [f["rating"]["overall"] for f in page["feedback"]] == [5]
    with pytest.raises(ValidationError):
        FeedbackService.list_event_feedback(db_session, ADMIN, attended_event.id, sort_by="loudest")


def test_list_event_feedback_requires_staff_or_teacher(db_session, attended_event):
    with pytest.raises(ForbiddenError):
        FeedbackService.list_event_feedback(db_session, student("alice"), attended_event.id)


def test_my_feedback_excludes_anonymous(db_session, attended_event):
    FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, overall=4))
    FeedbackService.submit(db_session, student("alice"), payload(attended_event.id, anonymous=True))

    mine = FeedbackService.my_feedback(db_session, student("alice"))

    assert mine["statistics"]["total"] == 1
    assert mine["feedback"][0]["submitted_by"] == "alice"


def test_concurrent_helpful_votes_are_all_counted(db_session, session_factory, attended_event):
    feedback_id = FeedbackService.submit(db_session, student("alice"), payload(attended_event.id)).feedback_id
    voters = [f"voter{i}" for i in range(6)]
    start = threading.Barrier(len(voters))
    results = []
    errors = []

    def vote(voter):
        db = session_factory()
        try:
            start.wait()
            results.append(FeedbackService.mark_helpful(db, student(voter), feedback_id))
        except Exception as exc:
            errors.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=vote, args=(v,)) for v in voters]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(r.user_marked_helpful for r in results)
    assert all(1 <= r.helpful_count <= len(voters) for r in results)

    stored = FeedbackRepo.get(db_session, feedback_id)
    assert stored.helpful.count == len(voters)
    assert sorted(stored.helpful.users) == voters
