"""Shared test fixtures for the Fundgate backend.

Provides:
- In-memory SQLite database (fresh engine and schema per test)
- A manual clock and a recording settlement ledger with failure injection
- FastAPI test client with the database, clock and ledger overridden
- Factory helpers for creating campaigns and funding them
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "development")

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from fundgate.core.clock import ManualClock
from fundgate.core.transfer import RecordingLedger
from fundgate.models import Base
from fundgate.services.errors import TransferFailed

START = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
CREATOR = "creator-1"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session = AsyncSession(bind=engine, expire_on_commit=False)
    yield session
    await session.close()


# ---------------------------------------------------------------------------
# Clock and settlement
# ---------------------------------------------------------------------------


class FlakyLedger(RecordingLedger):
    """Recording ledger that can be told to refuse transfers."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False
        self.attempts = 0

    async def transfer(self, to: str, amount: int) -> None:
        self.attempts += 1
        if self.fail:
            raise TransferFailed("settlement unavailable")
        await super().transfer(to, amount)


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def ledger():
    return FlakyLedger()


@pytest.fixture(autouse=True)
def _reset_campaign_locks():
    """Locks are bound to the event loop of the test that first used them."""
    from fundgate.services.transaction import campaign_locks

    campaign_locks.reset()
    yield
    campaign_locks.reset()


# ---------------------------------------------------------------------------
# FastAPI test app + HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def app(db, clock, ledger):
    """Minimal FastAPI test app with database, clock and settlement overridden."""
    from fastapi import FastAPI

    from fundgate.api.deps import get_clock, get_transfer_port
    from fundgate.api.v1.router import api_router
    from fundgate.config import settings
    from fundgate.database import get_db
    from fundgate.main import funding_error_handler
    from fundgate.services.errors import FundingError

    test_app = FastAPI()
    test_app.add_exception_handler(FundingError, funding_error_handler)
    test_app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    async def _override_get_db():
        yield db

    test_app.dependency_overrides[get_db] = _override_get_db
    test_app.dependency_overrides[get_clock] = lambda: clock
    test_app.dependency_overrides[get_transfer_port] = lambda: ledger
    yield test_app
    test_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """HTTP test client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


def caller(identity: str) -> dict[str, str]:
    return {"X-Caller-Id": identity}


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


async def create_campaign(
    db,
    clock,
    *,
    creator=CREATOR,
    title="Solar Workshop",
    description="Tools and training",
    amounts=(100, 100, 100),
    funding_days=30,
    deadlines=None,
):
    """Create a campaign whose milestone deadlines fall on the funding deadline."""
    from fundgate.services.campaign_store import create_campaign as _create

    funding_deadline = clock.now() + timedelta(days=funding_days)
    if deadlines is None:
        deadlines = [funding_deadline] * len(amounts)
    return await _create(
        db,
        creator=creator,
        title=title,
        description=description,
        target_amount=sum(amounts),
        funding_deadline=funding_deadline,
        milestone_descriptions=[f"Milestone {i}" for i in range(len(amounts))],
        milestone_amounts=list(amounts),
        milestone_deadlines=list(deadlines),
        clock=clock,
    )


async def fund(db, clock, campaign_id, contributions):
    """Apply ``{contributor: amount}`` contributions in order."""
    from fundgate.services.contribution_service import contribute

    for contributor, amount in contributions.items():
        await contribute(db, campaign_id, contributor, amount, clock=clock)


async def snapshot(db, campaign_id) -> dict:
    """Fresh copy of every ledger field of a campaign, for before/after comparisons."""
    from fundgate.services.campaign_store import get_campaign

    c = await get_campaign(db, campaign_id)
    return {
        "status": c.status,
        "raised": c.raised_amount,
        "released": c.released_amount,
        "refunded": c.refunded_amount,
        "contributions": [(e.contributor, e.amount) for e in c.contributions],
        "milestones": [
            (m.status, m.votes_for, m.votes_against, m.completed_at) for m in c.milestones
        ],
    }
