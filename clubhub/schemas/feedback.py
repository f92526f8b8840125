"""
Feedback Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

class FeedbackStatus(str, Enum):
    submitted = "submitted"
    reviewed = "reviewed"
    responded = "responded"
    archived = "archived"

class SentimentClass(str, Enum):
    positive = "positive"
    neutral = "neutral"
    negative = "negative"

class PreferredFormat(str, Enum):
    workshop = "workshop"
    seminar = "seminar"
    hands_on = "hands-on"
    panel_discussion = "panel-discussion"
    networking = "networking"
    hybrid = "hybrid"

class AttendFutureLikelihood(str, Enum):
    definitely = "definitely"
    probably = "probably"
    maybe = "maybe"
    probably_not = "probably-not"
    definitely_not = "definitely-not"

class Rating(BaseModel):
    overall: int = Field(..., ge=1, le=5)
    organization: Optional[int] = Field(None, ge=1, le=5)
    content: Optional[int] = Field(None, ge=1, le=5)
    venue: Optional[int] = Field(None, ge=1, le=5)
    speakers: Optional[int] = Field(None, ge=1, le=5)

class FeedbackText(BaseModel):
    what_worked_well: str = Field(..., min_length=10, max_length=2000)
    improvements: Optional[str] = Field(None, max_length=2000)
    additional_comments: Optional[str] = Field(None, max_length=1000)

    @field_validator("what_worked_well", "improvements", "additional_comments", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

class Suggestions(BaseModel):
    future_topics: List[str] = []
    preferred_format: Optional[PreferredFormat] = None
    recommend_to_others: Optional[bool] = None
    likely_to_attend_future: Optional[AttendFutureLikelihood] = None

class FeedbackPayload(BaseModel):
    """What a participant writes; validated before any store access"""
    rating: Rating
    feedback: FeedbackText
    suggestions: Optional[Suggestions] = None

class FeedbackSubmit(FeedbackPayload):
    """Request body for submitting feedback"""
    event_id: str
    anonymous: bool = False

class Sentiment(BaseModel):
    score: float = Field(0.0, ge=-1, le=1)
    classification: SentimentClass = SentimentClass.neutral
    confidence: float = Field(0.0, ge=0, le=1)
    analyzed_at: Optional[datetime] = None

class Moderation(BaseModel):
    inappropriate: bool = False
    spam: bool = False
    flagged_by: Optional[str] = None
    flagged_at: Optional[datetime] = None
    reason: Optional[str] = None

class ResponseRecord(BaseModel):
    content: str
    responded_by: str
    responded_at: datetime

class Helpful(BaseModel):
    count: int = 0
    users: List[str] = []

class FeedbackDocument(BaseModel):
    """Storage-independent view of one feedback record"""
    id: str
    event_id: str
    club_id: str
    submitted_by: Optional[str] = None
    anonymous: bool = False
    rating: Rating
    feedback: FeedbackText
    suggestions: Optional[Suggestions] = None
    sentiment: Sentiment = Sentiment()
    moderation: Moderation = Moderation()
    response: Optional[ResponseRecord] = None
    helpful: Helpful = Helpful()
    status: FeedbackStatus = FeedbackStatus.submitted
    created_at: datetime
    updated_at: Optional[datetime] = None

    def public_view(self) -> dict:
        """Serialized record with voter identities hidden"""
        data = self.model_dump(mode="json")
        data["helpful"] = {"count": self.helpful.count}
        if self.anonymous:
            data["submitted_by"] = None
        return data

class RespondRequest(BaseModel):
    response: str = Field(..., min_length=10, max_length=1000)

    @field_validator("response", mode="before")
    @classmethod
    def strip_response(cls, value):
        return value.strip() if isinstance(value, str) else value

class FlagRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)
    spam: bool = False

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, value):
        return value.strip() if isinstance(value, str) else value

class HelpfulResult(BaseModel):
    feedback_id: str
    helpful_count: int
    user_marked_helpful: bool

class SubmissionResult(BaseModel):
    feedback_id: str
    anonymous: bool
    submitted_at: datetime
    sentiment: Sentiment
