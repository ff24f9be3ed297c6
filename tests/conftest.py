"""
Shared test fixtures for the Breakroom test suite.

Every test gets a fresh in-memory aiosqlite database; the app's ``get_db``
dependency is pointed at it and requests authenticate with real access
tokens for users inserted by the ``factory`` fixture.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from breakroom.api.v1.deps import get_db
from breakroom.core.security import create_access_token
from breakroom.db.base import Base
from breakroom.main import app
from breakroom.models.attendance import AttendanceInterval, BreakRequest
from breakroom.models.break_policy import BreakPolicy
from breakroom.models.user import Team, User
from breakroom.services import (attendance, eligibility, entitlements, lifecycle,
                                moderation, reports, timekeeping)

# Midday, so shifts and breaks placed a few hours back stay on the same UTC
# day as the service clock.
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

_CLOCKED_MODULES = (attendance, eligibility, entitlements, lifecycle, moderation, reports, timekeeping)


def ago(minutes: float) -> datetime:
    return NOW - timedelta(minutes=minutes)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch) -> datetime:
    """Pin every service clock to :data:`NOW`."""
    for module in _CLOCKED_MODULES:
        monkeypatch.setattr(module, "utcnow", lambda: NOW)
    return NOW


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file database, each with its own connection.

    Used where two sessions must commit independently of each other.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'breakroom.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct service calls and queries."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


# ── Factories ───────────────────────────────────────────────────────
class Factory:
    """Insert reference rows and shifts with times relative to NOW."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._seq = 0

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def team(self, name: str = "Support") -> Team:
        return await self._save(Team(name=name))

    async def user(
        self,
        role: str = "employee",
        team: Team | None = None,
        name: str | None = None,
        is_active: bool = True,
    ) -> User:
        self._seq += 1
        return await self._save(
            User(
                email=f"{role}{self._seq}@example.com",
                full_name=name or f"{role.title()} {self._seq}",
                role=role,
                team_id=team.id if team else None,
                is_active=is_active,
            )
        )

    async def shift(
        self,
        user: User,
        minutes_ago: float = 90,
        closed_minutes_ago: float | None = None,
    ) -> AttendanceInterval:
        return await self._save(
            AttendanceInterval(
                user_id=user.id,
                clock_in_at=ago(minutes_ago),
                clock_out_at=ago(closed_minutes_ago) if closed_minutes_ago is not None else None,
            )
        )

    async def brk(
        self,
        interval: AttendanceInterval,
        type: str = "coffee",
        status: str = "pending",
        started_minutes_ago: float | None = None,
        ended_minutes_ago: float | None = None,
        team_id: int | None = None,
    ) -> BreakRequest:
        return await self._save(
            BreakRequest(
                user_id=interval.user_id,
                attendance_id=interval.id,
                team_id=team_id,
                type=type,
                status=status,
                started_at=ago(started_minutes_ago) if started_minutes_ago is not None else None,
                ended_at=ago(ended_minutes_ago) if ended_minutes_ago is not None else None,
            )
        )

    async def completed_break(
        self,
        interval: AttendanceInterval,
        minutes: float,
        type: str = "coffee",
        ended_minutes_ago: float = 5,
    ) -> BreakRequest:
        return await self.brk(
            interval,
            type=type,
            status="completed",
            started_minutes_ago=ended_minutes_ago + minutes,
            ended_minutes_ago=ended_minutes_ago,
        )

    async def policy(self, **values) -> BreakPolicy:
        defaults = {
            "micro_break_daily_limit_minutes": 30,
            "lunch_break_daily_limit_minutes": 60,
            "min_minutes_before_break": 60,
            "instant_approval_team_capacity": 0,
        }
        defaults.update(values)
        return await self._save(BreakPolicy(id=1, **defaults))


@pytest.fixture
def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)
