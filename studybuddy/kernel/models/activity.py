"""
Activity models - recorded study sessions and per-question attempts.

These rows are the aggregates the badge rules read (cumulative correct
answers, per-unit accuracy, perfect sessions).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studybuddy.kernel.models.base import Base, generate_uuid


class SessionType(str, Enum):
    """Kinds of study session."""
    ONBOARDING = "onboarding"
    DAILY = "daily"
    QUICK_DRILL = "quick_drill"
    MINI_TEST = "mini_test"
    MOCK_EXAM = "mock_exam"
    FLASHCARDS = "flashcards"


class StudySession(Base):
    """A completed study session."""

    __tablename__ = "study_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    session_type: Mapped[str] = mapped_column(String(30), nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    attempts: Mapped[List["QuestionAttempt"]] = relationship(
        "QuestionAttempt",
        back_populates="session",
        cascade="all, delete-orphan",
    )


class QuestionAttempt(Base):
    """A single answered question within a session, tagged by syllabus unit."""

    __tablename__ = "question_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("study_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(100), nullable=False, default="unknown")
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False)

    session: Mapped["StudySession"] = relationship("StudySession", back_populates="attempts")

    __table_args__ = (
        Index("ix_question_attempts_user_unit", "user_id", "unit"),
    )
