"""
Progression models - per-user XP state and the append-only XP ledger.

The ledger rows are never updated or deleted; the sum of a user's
``xp_events.xp_value`` always equals ``user_progression_state.total_xp``.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from studybuddy.kernel.models.base import Base, TimestampMixin, generate_uuid


class UserProgressionState(Base, TimestampMixin):
    """
    Per-user progression state.
    Mutated only through ProgressionLedger using single-statement updates.
    """

    __tablename__ = "user_progression_state"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        unique=True,
        index=True,
    )

    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    study_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_study_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_user_progression_state_total_xp_non_negative"),
        CheckConstraint("level >= 1", name="ck_user_progression_state_level_min"),
    )

    def __repr__(self) -> str:
        return f"<UserProgressionState {self.user_id} xp={self.total_xp} level={self.level}>"


class XPEvent(Base):
    """Immutable XP ledger entry."""

    __tablename__ = "xp_events"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    xp_value: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("xp_value > 0", name="ck_xp_events_xp_value_positive"),
        Index("ix_xp_events_user_created", "user_id", "created_at"),
    )
