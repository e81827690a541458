"""
Shared test fixtures for the readiness monitor test suite.

Async throughout (aiosqlite + AsyncSession). Every test gets fresh tables,
a seeded company with two teams, and an overridable "current user".
"""

import asyncio
import os
import sys
from datetime import date, datetime, time, timezone
from types import SimpleNamespace
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEFAULT_TIMEZONE"] = "Asia/Manila"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_current_active_user, get_db, get_session_factory
from app.db.base import Base
from app.main import app
from app.models.checkin import Checkin
from app.models.company import Company
from app.models.exception_request import ExceptionRequest
from app.models.team import Team
from app.models.user import User
from app.services.readiness import GREEN, RED, YELLOW

TZ = "Asia/Manila"

# A separate test engine; the app's own engine is never touched.
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(scope="session")
def event_loop():
    """Create an instance of the default event loop for each test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


def _override_get_session_factory():
    return TestingSessionLocal


app.dependency_overrides[get_db] = _override_get_db
app.dependency_overrides[get_session_factory] = _override_get_session_factory


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Auth override ───────────────────────────────────────────────────
@pytest.fixture
def login_as():
    """Make every request run as the given user until the test ends."""

    def _login(user: User) -> User:
        async def _current() -> User:
            return user

        app.dependency_overrides[get_current_active_user] = _current
        return user

    yield _login
    app.dependency_overrides.pop(get_current_active_user, None)


# ── Data helpers ────────────────────────────────────────────────────
def local_noon(day: date, tz: str = TZ) -> datetime:
    """Noon of a company-local date, as a UTC instant."""
    return datetime.combine(day, time(12, 0), tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)


def status_for(score: float) -> str:
    if score >= 70:
        return GREEN
    if score >= 40:
        return YELLOW
    return RED


async def add_checkin(
    db: AsyncSession,
    user: User,
    at: datetime,
    score: float,
    status: str | None = None,
    **metrics,
) -> Checkin:
    checkin = Checkin(
        user_id=user.id,
        company_id=user.company_id,
        mood=metrics.get("mood", 7),
        stress=metrics.get("stress", 3),
        sleep=metrics.get("sleep", 7),
        physical_health=metrics.get("physical_health", 7),
        readiness_score=score,
        readiness_status=status or status_for(score),
        created_at=at,
    )
    db.add(checkin)
    await db.commit()
    await db.refresh(checkin)
    return checkin


async def add_leave(
    db: AsyncSession,
    user: User,
    start: date,
    end: date,
    status: str = "APPROVED",
    is_exemption: bool = True,
) -> ExceptionRequest:
    exc = ExceptionRequest(
        user_id=user.id,
        company_id=user.company_id,
        type="SICK_LEAVE",
        reason="Flu",
        status=status,
        start_date=start,
        end_date=end,
        is_exemption=is_exemption,
    )
    db.add(exc)
    await db.commit()
    await db.refresh(exc)
    return exc


@pytest.fixture
async def seeded(db_session: AsyncSession) -> SimpleNamespace:
    """One company in Asia/Manila with team Alpha (5 workers + lead) and team Bravo."""
    company = Company(name="Acme", timezone=TZ)
    db_session.add(company)
    await db_session.flush()

    alpha = Team(company_id=company.id, name="Alpha")
    bravo = Team(company_id=company.id, name="Bravo")
    db_session.add_all([alpha, bravo])
    await db_session.flush()

    def _user(email: str, first: str, role: str, team: Team | None) -> User:
        return User(
            email=email,
            hashed_password="not-used",
            first_name=first,
            last_name="Tester",
            role=role,
            company_id=company.id,
            team_id=team.id if team else None,
        )

    workers = [_user(f"w{i}@acme.test", f"Worker{i}", "WORKER", alpha) for i in range(1, 6)]
    lead = _user("lead@acme.test", "Lena", "TEAM_LEAD", None)
    admin = _user("admin@acme.test", "Ada", "ADMIN", None)
    outsider = _user("bravo@acme.test", "Bob", "WORKER", bravo)
    db_session.add_all([*workers, lead, admin, outsider])
    await db_session.flush()

    alpha.leader_id = lead.id
    await db_session.commit()

    return SimpleNamespace(
        company=company,
        alpha=alpha,
        bravo=bravo,
        workers=workers,
        lead=lead,
        admin=admin,
        outsider=outsider,
    )
