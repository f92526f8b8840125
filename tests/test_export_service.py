"""
Tests for roster and feedback exports
"""

import io
import pandas as pd
from datetime import datetime, timezone

from clubhub.schemas.event import (
    AttendanceRecord, EventDocument, EventStatus, RegistrationStatus, RosterEntry,
)
from clubhub.schemas.feedback import FeedbackDocument, FeedbackText, Rating, Suggestions
from clubhub.services.export_service import ExportService

WHEN = datetime(2024, 5, 1, 18, tzinfo=timezone.utc)


def sample_event():
    return EventDocument(
        id="evt-1",
        club_id="club-1",
        organizer_id="teacher-1",
        title="Drone Day",
        status=EventStatus.ongoing,
        capacity=5,
        registration_deadline=WHEN,
        event_date=WHEN,
        registered=[
            RosterEntry(participant_id="alice", registered_at=WHEN, status=RegistrationStatus.attended),
            RosterEntry(participant_id="bob", registered_at=WHEN),
            RosterEntry(participant_id="carol", registered_at=WHEN, status=RegistrationStatus.cancelled),
        ],
        attendance=[
            AttendanceRecord(participant_id="alice", marked_by="teacher-1", marked_at=WHEN, notes="On time"),
        ],
    )


def test_roster_rows_skip_cancelled():
    rows = ExportService.roster_rows(sample_event())

    assert [r['Participant ID'] for r in rows] == ["alice", "bob"]
    assert rows[0]['Attended'] == 'Yes'
    assert rows[0]['Notes'] == 'On time'
    assert rows[0]['Marked By'] == 'teacher-1'
    assert rows[1]['Attended'] == 'No'
    assert rows[1]['Attendance Type'] == ''


def test_roster_xlsx_roundtrip():
    content = ExportService.export_roster(sample_event(), "xlsx")

    df = pd.read_excel(io.BytesIO(content))
    assert list(df.columns) == ExportService.ROSTER_COLUMNS
    assert len(df) == 2


def test_empty_roster_keeps_headers():
    event = sample_event().model_copy(update={"registered": [], "attendance": []})
    content = ExportService.export_roster(event, "csv").decode("utf-8")
    assert content.strip() == ",".join(ExportService.ROSTER_COLUMNS)


def test_feedback_rows_hide_submitter_by_default():
    record = FeedbackDocument(
        id="fb-1",
        event_id="evt-1",
        club_id="club-1",
        submitted_by="alice",
        rating=Rating(overall=4, venue=3),
        feedback=FeedbackText(what_worked_well="Flying the drones outdoors"),
        suggestions=Suggestions(future_topics=["FPV", "mapping"], preferred_format="hands-on"),
        created_at=WHEN,
    )

    public = ExportService.feedback_rows([record])[0]
    private = ExportService.feedback_rows([record], include_submitter=True)[0]

    assert 'Submitted By' not in public
    assert private['Submitted By'] == 'alice'
    assert public['Future Topics'] == 'FPV, mapping'
    assert public['Preferred Format'] == 'hands-on'
    assert public['Venue Rating'] == 3
