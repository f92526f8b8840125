"""
Club model (read-only here; club CRUD lives in another service)
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime

from clubhub.core.db import Base

class Club(Base):
    __tablename__ = "clubs"
    
    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    coordinator_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
