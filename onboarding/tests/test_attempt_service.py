"""
Tests for the attempt lifecycle: gating, resume, timeout, submission and locks.
"""

import pytest

from conftest import mcq, seed_test
from onboarding.assessments.database_models import Attempt
from onboarding.assessments.models import AttemptStatus, SubmitReason
from onboarding.assessments.repositories import AttemptRepository
from onboarding.common.db.session import session_scope
from onboarding.common.error_handling import (
    AttemptFrozenError, InvalidTransitionError, NotFoundError,
    PrerequisiteNotMetError, ValidationError
)
from onboarding.config import settings

USER = "candidate-1"


def availability_by_number(statuses):
    return {entry["test"]["test_number"]: entry["availability"] for entry in statuses}


@pytest.mark.asyncio
async def test_dashboard_gates_tests_in_sequence(services, sequence):
    statuses = await services.attempts.list_test_statuses(USER)
    assert availability_by_number(statuses) == {1: "available", 2: "locked", 3: "locked"}

    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    statuses = await services.attempts.list_test_statuses(USER)
    assert availability_by_number(statuses) == {1: "in_progress", 2: "locked", 3: "locked"}

    await services.attempts.submit_attempt(view["attempt"]["id"], USER)
    statuses = await services.attempts.list_test_statuses(USER)
    assert availability_by_number(statuses) == {1: "completed", 2: "available", 3: "locked"}


@pytest.mark.asyncio
async def test_start_locked_test_rejected(services, sequence):
    with pytest.raises(PrerequisiteNotMetError):
        await services.attempts.start_attempt(USER, sequence[1]["test_id"])


@pytest.mark.asyncio
async def test_sequence_enforcement_can_be_disabled(services, sequence, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_TEST_SEQUENCE", False)
    view = await services.attempts.start_attempt(USER, sequence[1]["test_id"])
    assert view["attempt"]["status"] == "in_progress"


@pytest.mark.asyncio
async def test_start_creates_attempt_with_hidden_keys(services, sequence, clock):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])

    assert view["attempt"]["status"] == "in_progress"
    assert view["attempt"]["started_at"] == clock().isoformat()
    assert view["attempt"]["version"] == 1
    assert view["remaining_seconds"] == 30 * 60
    assert [q["question_number"] for q in view["questions"]] == [1, 2]
    assert all("correct_answer" not in q for q in view["questions"])
    assert view["answers"] == {}


@pytest.mark.asyncio
async def test_resume_keeps_original_timer(services, sequence, clock):
    first = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    question_id = sequence[0]["questions"][1]
    await services.responses.save_answer(first["attempt"]["id"], question_id, "B", USER)

    clock.advance(minutes=12)
    resumed = await services.attempts.start_attempt(USER, sequence[0]["test_id"])

    assert resumed["attempt"]["id"] == first["attempt"]["id"]
    assert resumed["remaining_seconds"] == 18 * 60
    assert resumed["answers"] == {question_id: "B"}


@pytest.mark.asyncio
async def test_completed_test_cannot_be_restarted(services, sequence):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    await services.attempts.submit_attempt(view["attempt"]["id"], USER)

    with pytest.raises(InvalidTransitionError):
        await services.attempts.start_attempt(USER, sequence[0]["test_id"])


@pytest.mark.asyncio
async def test_inactive_or_empty_test_cannot_be_started(services, session_factory):
    inactive = await seed_test(session_factory, 1, [mcq(1)], is_active=False)
    with pytest.raises(ValidationError):
        await services.attempts.start_attempt(USER, inactive["test_id"])

    empty = await seed_test(session_factory, 5, [])
    with pytest.raises(ValidationError):
        await services.attempts.start_attempt(USER, empty["test_id"])


@pytest.mark.asyncio
async def test_submit_auto_scores_and_is_idempotent(services, sequence, clock):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    attempt_id = view["attempt"]["id"]
    questions = sequence[0]["questions"]
    await services.responses.save_answer(attempt_id, questions[1], "B", USER)
    await services.responses.save_answer(attempt_id, questions[2], "A", USER)

    clock.advance(minutes=5)
    submitted = await services.attempts.submit_attempt(attempt_id, USER)
    assert submitted["attempt"]["status"] == "submitted"
    assert submitted["attempt"]["submitted_at"] == clock().isoformat()
    assert submitted["remaining_seconds"] is None

    clock.advance(minutes=1)
    again = await services.attempts.submit_attempt(attempt_id, USER)
    assert again["attempt"]["submitted_at"] == submitted["attempt"]["submitted_at"]
    assert again["attempt"]["version"] == submitted["attempt"]["version"]

    opened = await services.evaluations.open_for_evaluation(attempt_id)
    points = {item["question_number"]: (item["points_awarded"], item["auto_scored"])
              for item in opened["responses"]}
    assert points == {1: (10, True), 2: (0, False)}


@pytest.mark.asyncio
async def test_timer_expiry_submits_at_deadline(services, sequence, clock):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    attempt_id = view["attempt"]["id"]
    deadline = view["deadline"]

    clock.advance(minutes=31)
    expired = await services.attempts.get_attempt(attempt_id, USER)

    assert expired["attempt"]["status"] == "submitted"
    assert expired["attempt"]["submitted_at"] == deadline

    history = await services.evaluations.list_evaluations(attempt_id)
    assert [entry["action"] for entry in history["audit_log"]] == ["auto_submit"]
    assert history["audit_log"][0]["changed_by"] == "system"


@pytest.mark.asyncio
async def test_timeout_submission_by_client(services, sequence, clock):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    clock.advance(minutes=30)
    submitted = await services.attempts.submit_attempt(view["attempt"]["id"], USER, SubmitReason.TIMEOUT)
    assert submitted["attempt"]["status"] == "submitted"
    assert submitted["attempt"]["submitted_at"] == view["deadline"]


@pytest.mark.asyncio
async def test_expire_overdue_sweeps_only_expired(services, sequence, session_factory, clock, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_TEST_SEQUENCE", False)
    timed = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    untimed = await services.attempts.start_attempt(USER, sequence[2]["test_id"])

    clock.advance(hours=1)
    closed = await services.attempts.expire_overdue()

    assert closed == [timed["attempt"]["id"]]
    still_open = await services.attempts.get_attempt(untimed["attempt"]["id"], USER)
    assert still_open["attempt"]["status"] == "in_progress"


@pytest.mark.asyncio
async def test_other_candidates_attempt_is_not_found(services, sequence):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    with pytest.raises(NotFoundError):
        await services.attempts.get_attempt(view["attempt"]["id"], "someone-else")


@pytest.mark.asyncio
async def test_locked_attempt_rejects_submit_until_unlocked(services, sequence, clock):
    view = await services.attempts.start_attempt(USER, sequence[0]["test_id"])
    attempt_id = view["attempt"]["id"]

    locked = await services.attempts.lock_attempt(attempt_id, "admin-1", reason="investigation")
    assert locked["is_locked"] is True
    assert locked["locked_by"] == "admin-1"

    with pytest.raises(AttemptFrozenError):
        await services.attempts.submit_attempt(attempt_id, USER)

    clock.advance(seconds=5)
    unlocked = await services.attempts.unlock_attempt(attempt_id, "admin-1")
    assert unlocked["is_locked"] is False
    submitted = await services.attempts.submit_attempt(attempt_id, USER)
    assert submitted["attempt"]["status"] == AttemptStatus.SUBMITTED.value

    history = await services.evaluations.list_evaluations(attempt_id)
    assert [entry["action"] for entry in history["audit_log"]] == ["lock", "unlock"]
    assert history["audit_log"][0]["reason"] == "investigation"


@pytest.mark.asyncio
async def test_second_in_progress_attempt_is_refused_by_the_database(session_factory, sequence, clock):
    test_id = sequence[0]["test_id"]
    async with session_scope(session_factory) as session:
        attempts = AttemptRepository(session)
        first = await attempts.create_in_progress(
            Attempt(user_id=USER, test_id=test_id, status="in_progress", started_at=clock()))
        second = await attempts.create_in_progress(
            Attempt(user_id=USER, test_id=test_id, status="in_progress", started_at=clock()))

    assert first is not None
    assert second is None
