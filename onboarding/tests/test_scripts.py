"""
Tests for the maintenance scripts.
"""

import pytest

from conftest import FakeClock
from onboarding.assessments.repositories import AttemptRepository
from onboarding.common.db.session import session_scope
from onboarding.config import settings
from onboarding.scripts import expire_attempts

USER = "candidate-1"


@pytest.mark.asyncio
async def test_expiry_sweep_closes_overdue_attempts(database_url, services, sequence, session_factory, clock, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_TEST_SEQUENCE", False)
    timed = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    untimed = await services.attempts.start_attempt(USER, sequence[2]["test_id"])

    later = FakeClock(clock())
    later.advance(minutes=31)
    closed = await expire_attempts.async_main(database_url, clock=later)

    assert closed == [timed["attempt"]["id"]]
    async with session_scope(session_factory) as session:
        attempts = AttemptRepository(session)
        assert (await attempts.get(timed["attempt"]["id"])).status == "submitted"
        assert (await attempts.get(untimed["attempt"]["id"])).status == "in_progress"


def test_expiry_script_reports_failure():
    assert expire_attempts.main(["--database-url", "mysql://localhost/onboarding"]) == 1
