"""
Analytics Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field

class GroupBy(str, Enum):
    day = "day"
    week = "week"
    month = "month"

class DateRange(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None

def _empty_sentiment_counts() -> Dict[str, int]:
    return {"positive": 0, "neutral": 0, "negative": 0}

def _empty_rating_counts() -> Dict[int, int]:
    return {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

class ClubSummary(BaseModel):
    total_feedback: int = 0
    average_overall_rating: float = 0.0
    average_organization_rating: float = 0.0
    average_content_rating: float = 0.0
    average_venue_rating: float = 0.0
    average_speakers_rating: float = 0.0
    sentiment_counts: Dict[str, int] = Field(default_factory=_empty_sentiment_counts)
    rating_counts: Dict[int, int] = Field(default_factory=_empty_rating_counts)

class TopicCount(BaseModel):
    topic: str
    count: int

class TimeBucket(BaseModel):
    period: str
    total_feedback: int
    average_rating: float
    positive_count: int
    neutral_count: int
    negative_count: int
    anonymous_count: int
    detailed_count: int

class SentimentClassStats(BaseModel):
    classification: str
    count: int
    average_score: float
    average_rating: float
    average_confidence: float
