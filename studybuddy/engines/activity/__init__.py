"""
Activity Engine - records study activity and gates quota-limited actions.
"""

from studybuddy.engines.activity.recorder import (
    ActivityEvent,
    ActivityOutcome,
    ActivityRecorder,
    AnswerRecord,
    SessionStats,
    UsageSummary,
)

__all__ = [
    "ActivityEvent",
    "ActivityOutcome",
    "ActivityRecorder",
    "AnswerRecord",
    "SessionStats",
    "UsageSummary",
]
