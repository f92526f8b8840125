"""
Event model

The roster (registered, waitlist, attendance) is stored on the event row as
JSON so a single conditional UPDATE keyed on ``version`` replaces it
atomically.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON

from clubhub.core.db import Base

class Event(Base):
    __tablename__ = "events"
    
    id = Column(String(64), primary_key=True, index=True)
    club_id = Column(String(64), ForeignKey("clubs.id"), nullable=False, index=True)
    organizer_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default="draft", index=True)
    capacity = Column(Integer, nullable=True)  # None = unbounded
    registration_deadline = Column(DateTime(timezone=True), nullable=False)
    event_date = Column(DateTime(timezone=True), nullable=False, index=True)
    
    co_organizers = Column(JSON, nullable=False, default=list)
    registered = Column(JSON, nullable=False, default=list)
    waitlist = Column(JSON, nullable=False, default=list)
    attendance = Column(JSON, nullable=False, default=list)
    statistics = Column(JSON, nullable=False, default=dict)
    views = Column(Integer, nullable=False, default=0)
    
    # Optimistic concurrency token, bumped by every roster write
    version = Column(Integer, nullable=False, default=1)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
