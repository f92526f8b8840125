"""
Feedback and helpful-vote models
"""

from datetime import datetime
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text,
    UniqueConstraint, text,
)
from sqlalchemy.orm import relationship

from clubhub.core.db import Base

class Feedback(Base):
    __tablename__ = "feedback"
    
    id = Column(String(64), primary_key=True, index=True)
    event_id = Column(String(64), ForeignKey("events.id"), nullable=False, index=True)
    club_id = Column(String(64), nullable=False, index=True)
    submitted_by = Column(String(64), nullable=True)  # None when anonymous
    anonymous = Column(Boolean, nullable=False, default=False)
    
    rating_overall = Column(Integer, nullable=False)
    rating_organization = Column(Integer, nullable=True)
    rating_content = Column(Integer, nullable=True)
    rating_venue = Column(Integer, nullable=True)
    rating_speakers = Column(Integer, nullable=True)
    
    what_worked_well = Column(Text, nullable=False)
    improvements = Column(Text, nullable=True)
    additional_comments = Column(Text, nullable=True)
    suggestions = Column(JSON, nullable=True)
    
    sentiment_score = Column(Float, nullable=False, default=0.0)
    sentiment_classification = Column(String(10), nullable=False, default="neutral")
    sentiment_confidence = Column(Float, nullable=False, default=0.0)
    sentiment_analyzed_at = Column(DateTime(timezone=True), nullable=True)
    
    flag_inappropriate = Column(Boolean, nullable=False, default=False)
    flag_spam = Column(Boolean, nullable=False, default=False)
    flagged_by = Column(String(64), nullable=True)
    flagged_at = Column(DateTime(timezone=True), nullable=True)
    flag_reason = Column(String(500), nullable=True)
    
    response_content = Column(Text, nullable=True)
    responded_by = Column(String(64), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    
    status = Column(String(20), nullable=False, default="submitted", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    
    votes = relationship("HelpfulVote", back_populates="feedback", cascade="all, delete-orphan")
    
    # One live record per (event, submitter); NULL submitters never collide
    __table_args__ = (
        Index(
            "uq_feedback_event_submitter_live",
            "event_id",
            "submitted_by",
            unique=True,
            sqlite_where=text("status != 'archived'"),
            postgresql_where=text("status != 'archived'"),
        ),
    )

class HelpfulVote(Base):
    __tablename__ = "feedback_helpful_votes"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    feedback_id = Column(String(64), ForeignKey("feedback.id"), nullable=False, index=True)
    voter_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    feedback = relationship("Feedback", back_populates="votes")
    
    __table_args__ = (UniqueConstraint("feedback_id", "voter_id", name="uq_helpful_vote"),)
