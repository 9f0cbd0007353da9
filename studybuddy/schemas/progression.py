"""
Progression schemas - XP awards, progression state and ledger history.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from studybuddy.engines.activity.recorder import SessionStats
from studybuddy.engines.progression.ledger import XPHistoryEntry


class AwardXPRequest(BaseModel):
    """Credit XP for an event; ``value`` overrides the fixed table value."""

    event_type: str = Field(..., min_length=1, max_length=50)
    value: Optional[int] = Field(default=None, ge=0)


class ActivityRequest(BaseModel):
    """A completed activity; ``occurred_at`` defaults to the server time."""

    event_type: str = Field(..., min_length=1, max_length=50)
    occurred_at: Optional[datetime] = None
    xp_value: Optional[int] = Field(default=None, ge=0)
    session_stats: Optional[SessionStats] = None
    count_usage: bool = True


class ProgressionResponse(BaseModel):
    total_xp: int
    level: int
    study_streak: int
    last_study_date: Optional[date] = None
    current_level_xp: int
    next_level_xp: int
    progress_percent: float


class XPHistoryResponse(BaseModel):
    items: List[XPHistoryEntry]
    total: int
