"""
Database models package
"""

from .club import Club
from .event import Event
from .feedback import Feedback, HelpfulVote

__all__ = ["Club", "Event", "Feedback", "HelpfulVote"]
