"""
Badge models - definitions and per-user awards.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from studybuddy.kernel.models.base import Base, generate_uuid


class BadgeCriteria(str, Enum):
    """Criteria a badge definition can be evaluated against."""
    STREAK = "streak"
    QUESTIONS_CORRECT = "questions_correct"
    UNIT_ACCURACY = "unit_accuracy"
    PERFECT_QUIZ = "perfect_quiz"
    XP_TOTAL = "xp_total"
    ONBOARDING = "onboarding"
    SESSIONS_COMPLETED = "sessions_completed"
    FLASHCARDS_COMPLETED = "flashcards_completed"


class BadgeDefinition(Base):
    """A named, one-time achievement."""

    __tablename__ = "badge_definitions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    criteria_type: Mapped[str] = mapped_column(String(50), nullable=False)
    criteria_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    icon: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="bronze")
    # Secondary XP credited through the ledger when the badge unlocks
    bonus_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class BadgeAward(Base):
    """
    A badge granted to a user.

    The (user_id, badge_id) unique constraint is what guarantees at-most-once
    awarding; application code only ever inserts with ON CONFLICT DO NOTHING.
    """

    __tablename__ = "badge_awards"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    badge_id: Mapped[str] = mapped_column(
        ForeignKey("badge_definitions.id", ondelete="CASCADE"),
        nullable=False,
    )
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_badge_awards_user_badge"),)
