"""
Keyword-based sentiment heuristic for feedback text
"""

from datetime import datetime
from typing import Optional

from clubhub.schemas.feedback import Sentiment, SentimentClass
from clubhub.utils.timeutil import utcnow

POSITIVE_WORDS = (
    "good", "great", "excellent", "amazing", "wonderful",
    "fantastic", "love", "best", "perfect", "awesome",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "horrible", "worst",
    "hate", "disappointing", "poor", "boring",
)


def analyze_sentiment(what_worked_well: str, improvements: Optional[str] = None, now: Optional[datetime] = None) -> Sentiment:
    """Score text in [-1, 1] by counting which keywords occur in it.

    Each keyword counts once when it appears anywhere in the lower-cased
    text, so "loved" matches "love".
    """
    text = f"{what_worked_well or ''} {improvements or ''}".lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in text)
    negative = sum(1 for word in NEGATIVE_WORDS if word in text)

    if positive > negative:
        score = min(1.0, positive / 10)
        classification = SentimentClass.positive
    elif negative > positive:
        score = max(-1.0, -negative / 10)
        classification = SentimentClass.negative
    else:
        score = 0.0
        classification = SentimentClass.neutral

    return Sentiment(
        score=score,
        classification=classification,
        confidence=abs(score),
        analyzed_at=now or utcnow(),
    )
