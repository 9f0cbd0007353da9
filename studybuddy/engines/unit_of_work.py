"""
Transaction boundary shared by the engine services.

Every mutating engine operation is one short transaction: it either commits
completely or is rolled back and surfaces as StoreWriteError. An ``atomic``
block opened inside another one on the same session joins the outer
transaction; only the outermost block commits or rolls back.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.engines.errors import StoreWriteError
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)

_DEPTH_KEY = "atomic_depth"


@asynccontextmanager
async def atomic(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Run the enclosed statements as one transaction on ``session``.

    Usage:
        async with atomic(self.session, "xp.award"):
            await self.session.execute(...)
    """
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    if depth:
        try:
            yield session
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    try:
        yield session
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(
            "Store write failed",
            extra={"operation": operation, "error": type(exc).__name__},
        )
        raise StoreWriteError(operation, exc) from exc
    except BaseException:
        await session.rollback()
        raise
    finally:
        session.info.pop(_DEPTH_KEY, None)
