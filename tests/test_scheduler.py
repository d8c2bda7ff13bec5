"""
Monthly payout job wiring.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from coachpay.engine import ConfigurationMissing, PayoutPeriod
from coachpay.engine.types import SYSTEM_ACTOR
from coachpay.scheduler import jobs

PAYOUT_DAY = datetime(2026, 10, 7, 2, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_db(monkeypatch):
    session = object()

    @asynccontextmanager
    async def _context():
        yield session

    async def _config(db):
        return SimpleNamespace(payout_day_of_month=7)

    monkeypatch.setattr(jobs, "get_db_context", _context)
    monkeypatch.setattr(jobs, "get_active_config", _config)
    return session


@pytest.fixture
def runs(monkeypatch):
    calls = []

    async def fake_run(db, period, actor, commit=False):
        calls.append((db, period, actor, commit))
        return SimpleNamespace(total_net=0), []

    monkeypatch.setattr(jobs, "run_payout_batch", fake_run)
    return calls


async def test_job_commits_previous_month_on_payout_day(fake_db, runs):
    await jobs.monthly_payout_job(now=PAYOUT_DAY)

    assert runs == [(fake_db, PayoutPeriod(year=2026, month=9), SYSTEM_ACTOR, True)]


async def test_job_skips_other_days(fake_db, runs):
    await jobs.monthly_payout_job(now=datetime(2026, 10, 8, 2, 0, tzinfo=timezone.utc))

    assert runs == []


async def test_january_run_covers_december(fake_db, runs):
    await jobs.monthly_payout_job(now=datetime(2027, 1, 7, 2, 0, tzinfo=timezone.utc))

    assert runs[0][1] == PayoutPeriod(year=2026, month=12)


async def test_job_logs_instead_of_raising(monkeypatch, fake_db, caplog):
    async def failing_run(db, period, actor, commit=False):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(jobs, "run_payout_batch", failing_run)

    await jobs.monthly_payout_job(now=PAYOUT_DAY)

    assert "database unavailable" in caplog.text


async def test_missing_config_logged(monkeypatch, fake_db, runs, caplog):
    async def no_config(db):
        raise ConfigurationMissing("Revenue split configuration is missing")

    monkeypatch.setattr(jobs, "get_active_config", no_config)

    await jobs.monthly_payout_job(now=PAYOUT_DAY)

    assert runs == []
    assert "configuration is missing" in caplog.text


async def test_reads_payout_day_from_saved_config(monkeypatch, db_session, split_config, runs):
    @asynccontextmanager
    async def _context():
        yield db_session

    monkeypatch.setattr(jobs, "get_db_context", _context)

    await jobs.monthly_payout_job(now=PAYOUT_DAY)

    assert len(runs) == 1


def test_setup_registers_daily_job():
    jobs.setup_scheduler()
    try:
        job = jobs.scheduler.get_job("monthly_payout")
        assert job is not None
        assert job.func is jobs.monthly_payout_job
    finally:
        jobs.scheduler.remove_job("monthly_payout")
