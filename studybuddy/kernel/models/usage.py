"""
Usage counter model - per-user, per-feature quota consumption.
"""

import uuid
from datetime import date
from enum import Enum

from sqlalchemy import CheckConstraint, Date, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studybuddy.kernel.models.base import Base, TimestampMixin, generate_uuid


class PeriodKind(str, Enum):
    """Reset cadence of a usage counter."""
    DAILY = "daily"
    WEEKLY = "weekly"


class UsageCounter(Base, TimestampMixin):
    """
    One row per (user, feature), created lazily on first use and reset in place.

    ``used`` counts consumption in the period starting at ``period_start``;
    ``lifetime_used`` is never reset.
    """

    __tablename__ = "usage_counters"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    feature: Mapped[str] = mapped_column(String(50), nullable=False)
    period_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifetime_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "feature", name="uq_usage_counters_user_feature"),
        CheckConstraint("used >= 0", name="ck_usage_counters_used_non_negative"),
    )
