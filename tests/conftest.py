"""
Pytest fixtures for StudyBuddy engine tests.

Each test gets its own file-backed SQLite database so separate sessions
(and concurrent tasks) share the same data.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from studybuddy.database import build_engine, build_session_maker
from studybuddy.engines.badges.catalog import seed_badge_catalog
from studybuddy.kernel.models import Base, BadgeDefinition, UserSubscription


class RecordingNotifier:
    """Notifier that keeps every call for assertions."""

    def __init__(self):
        self.xp = []
        self.level_ups = []
        self.badges = []

    async def xp_awarded(self, user_id, event_type, xp, new_total):
        self.xp.append((user_id, event_type, xp, new_total))

    async def level_up(self, user_id, new_level, bonus_xp):
        self.level_ups.append((user_id, new_level, bonus_xp))

    async def badge_unlocked(self, user_id, badge_id, badge_name):
        self.badges.append((user_id, badge_id, badge_name))


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine on a temp file."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    engine = build_engine(f"sqlite+aiosqlite:///{path}", busy_timeout_ms=30000)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.remove(path + suffix)


@pytest.fixture
def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def seeded_catalog(db_session: AsyncSession) -> int:
    """Default badge catalog."""
    return await seed_badge_catalog(db_session)


@pytest_asyncio.fixture
async def add_badge(db_session: AsyncSession):
    """Insert a single badge definition."""

    async def _add(badge_id: str, criteria_type: str, criteria_value: int = 0, bonus_xp: int = 0) -> BadgeDefinition:
        badge = BadgeDefinition(
            id=badge_id,
            name=badge_id.replace("_", " ").title(),
            description="",
            criteria_type=criteria_type,
            criteria_value=criteria_value,
            icon=None,
            bonus_xp=bonus_xp,
        )
        db_session.add(badge)
        await db_session.commit()
        return badge

    return _add


@pytest_asyncio.fixture
async def subscribe(db_session: AsyncSession):
    """Put a user on a subscription tier."""

    async def _subscribe(uid: uuid.UUID, tier: str) -> None:
        db_session.add(UserSubscription(user_id=uid, tier=tier))
        await db_session.commit()

    return _subscribe
