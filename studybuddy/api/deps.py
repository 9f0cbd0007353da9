"""
FastAPI dependencies for database sessions and engine services.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.database import async_session_maker
from studybuddy.engines.activity.recorder import ActivityRecorder
from studybuddy.engines.progression.ledger import ProgressionLedger


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_ledger(db: DbSession) -> ProgressionLedger:
    return ProgressionLedger(db)


def get_recorder(db: DbSession) -> ActivityRecorder:
    return ActivityRecorder(db)


Ledger = Annotated[ProgressionLedger, Depends(get_ledger)]
Recorder = Annotated[ActivityRecorder, Depends(get_recorder)]
