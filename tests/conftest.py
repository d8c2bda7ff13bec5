"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timezone
from decimal import Decimal

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coachpay.engine.types import ExitStatus, TaxIdType
from coachpay.models import Base, Coach, RevenueSplitConfig

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def split_config(db_session):
    """Default money rules: 30/50/20 split, 10%/20% TDS above 30,000."""
    config = RevenueSplitConfig(
        platform_fee_percent=Decimal("30"),
        coach_cost_percent=Decimal("50"),
        lead_cost_percent=Decimal("20"),
        tds_standard_rate=Decimal("10"),
        tds_penal_rate=Decimal("20"),
        tds_threshold_annual=Decimal("30000"),
        effective_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
        created_by="admin-1",
    )
    db_session.add(config)
    await db_session.commit()
    await db_session.refresh(config)
    return config


@pytest_asyncio.fixture
async def make_coach(db_session):
    """Factory for persisted coaches."""
    counter = {"n": 0}

    async def _make(**kwargs):
        counter["n"] += 1
        n = counter["n"]
        defaults = {
            "name": f"Coach {n}",
            "email": f"coach{n}@example.com",
            "is_active": True,
            "is_available": True,
            "exit_status": ExitStatus.NONE,
            "tax_id_type": TaxIdType.PAN,
            "tax_id_value": "ABCDE1234F",
            "payout_enabled": True,
            "bank_account_number": f"00001234567{n}",
            "referral_code": f"COACH{n}X",
        }
        defaults.update(kwargs)
        coach = Coach(**defaults)
        db_session.add(coach)
        await db_session.commit()
        await db_session.refresh(coach)
        return coach

    return _make


@pytest_asyncio.fixture
async def client(db_session):
    """HTTP client bound to the app, sharing the test session."""
    from httpx import ASGITransport, AsyncClient

    from coachpay.db import get_db
    from coachpay.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
