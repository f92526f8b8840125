"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .feedback import *
from .analytics import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventStatus",
    "EventDocument",
    "EventCreate",
    "RosterEntry",
    "WaitlistEntry",
    "AttendanceRecord",
    "AssignedStatus",
    "FeedbackDocument",
    "FeedbackPayload",
    "FeedbackSubmit",
    "Sentiment",
    "ClubSummary",
    "TopicCount",
    "TimeBucket",
    "GroupBy",
]
