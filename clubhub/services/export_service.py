"""
Roster and feedback exports (Excel or CSV)
"""

import io
from typing import Any, Dict, List

import pandas as pd

from clubhub.schemas.event import EventDocument, RegistrationStatus
from clubhub.schemas.feedback import FeedbackDocument

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


def _iso(value) -> str:
    return value.isoformat() if value else ""


class ExportService:
    """Service for building downloadable reports"""

    ROSTER_COLUMNS = [
        'Participant ID', 'Registration Date', 'Registration Status', 'Attended',
        'Attendance Type', 'Check In', 'Check Out', 'Notes', 'Marked By', 'Marked At',
    ]

    @staticmethod
    def roster_rows(event: EventDocument) -> List[Dict[str, Any]]:
        """One row per registration that was not cancelled"""
        attendance = {a.participant_id: a for a in event.attendance}
        rows = []
        for entry in event.registered:
            if entry.status == RegistrationStatus.cancelled:
                continue
            record = attendance.get(entry.participant_id)
            rows.append({
                'Participant ID': entry.participant_id,
                'Registration Date': _iso(entry.registered_at),
                'Registration Status': entry.status.value,
                'Attended': 'Yes' if record else 'No',
                'Attendance Type': record.attendance_type.value if record else '',
                'Check In': _iso(record.check_in_time) if record else '',
                'Check Out': _iso(record.check_out_time) if record else '',
                'Notes': (record.notes or '') if record else '',
                'Marked By': record.marked_by if record else '',
                'Marked At': _iso(record.marked_at) if record else '',
            })
        return rows

    @staticmethod
    def feedback_rows(records: List[FeedbackDocument], include_submitter: bool = False) -> List[Dict[str, Any]]:
        rows = []
        for fb in records:
            row = {
                'Feedback ID': fb.id,
                'Event ID': fb.event_id,
                'Overall Rating': fb.rating.overall,
                'Organization Rating': fb.rating.organization,
                'Content Rating': fb.rating.content,
                'Venue Rating': fb.rating.venue,
                'Speakers Rating': fb.rating.speakers,
                'What Worked Well': fb.feedback.what_worked_well,
                'Improvements': fb.feedback.improvements or '',
                'Additional Comments': fb.feedback.additional_comments or '',
                'Future Topics': ', '.join(fb.suggestions.future_topics) if fb.suggestions else '',
                'Preferred Format': fb.suggestions.preferred_format.value if fb.suggestions and fb.suggestions.preferred_format else '',
                'Recommend To Others': fb.suggestions.recommend_to_others if fb.suggestions else None,
                'Likely To Attend Future': fb.suggestions.likely_to_attend_future.value if fb.suggestions and fb.suggestions.likely_to_attend_future else '',
                'Sentiment': fb.sentiment.classification.value,
                'Sentiment Score': fb.sentiment.score,
                'Anonymous': 'Yes' if fb.anonymous else 'No',
                'Submitted At': _iso(fb.created_at),
            }
            if include_submitter:
                row['Submitted By'] = '' if fb.anonymous else (fb.submitted_by or '')
            rows.append(row)
        return rows

    @staticmethod
    def render(rows: List[Dict[str, Any]], fmt: str = "xlsx", sheet_name: str = "Export", columns: List[str] = None) -> bytes:
        """Serialize rows with pandas; xlsx goes through openpyxl"""
        df = pd.DataFrame(rows, columns=columns)
        if fmt == "csv":
            return df.to_csv(index=False).encode("utf-8")

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
        return buffer.getvalue()

    @staticmethod
    def export_roster(event: EventDocument, fmt: str = "xlsx") -> bytes:
        return ExportService.render(
            ExportService.roster_rows(event), fmt, sheet_name="Participants", columns=ExportService.ROSTER_COLUMNS
        )

    @staticmethod
    def export_feedback(records: List[FeedbackDocument], fmt: str = "xlsx", include_submitter: bool = False) -> bytes:
        return ExportService.render(
            ExportService.feedback_rows(records, include_submitter), fmt, sheet_name="Feedback"
        )
