"""
Outbound notification port.

The toast/celebration collaborator implements ProgressionNotifier; the engine
only calls it after the corresponding state change has committed.
"""

import uuid
from typing import Protocol

from studybuddy.logging_config import get_logger

logger = get_logger(__name__)


class ProgressionNotifier(Protocol):
    """Receives user-facing progression events."""

    async def xp_awarded(self, user_id: uuid.UUID, event_type: str, xp: int, new_total: int) -> None:
        ...

    async def level_up(self, user_id: uuid.UUID, new_level: int, bonus_xp: int) -> None:
        ...

    async def badge_unlocked(self, user_id: uuid.UUID, badge_id: str, badge_name: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records events in the application log."""

    async def xp_awarded(self, user_id: uuid.UUID, event_type: str, xp: int, new_total: int) -> None:
        logger.info(
            "XP awarded",
            extra={"user_id": str(user_id), "event_type": event_type, "xp": xp, "total_xp": new_total},
        )

    async def level_up(self, user_id: uuid.UUID, new_level: int, bonus_xp: int) -> None:
        logger.info(
            "Level up",
            extra={"user_id": str(user_id), "level": new_level, "bonus_xp": bonus_xp},
        )

    async def badge_unlocked(self, user_id: uuid.UUID, badge_id: str, badge_name: str) -> None:
        logger.info(
            "Badge unlocked",
            extra={"user_id": str(user_id), "badge_id": badge_id, "badge_name": badge_name},
        )
