"""
Tests for transaction boundaries on the SQLite engine.
"""

import pytest

from conftest import START
from onboarding.assessments.database_models import Attempt, Response
from onboarding.assessments.repositories import AttemptRepository, ResponseRepository
from onboarding.common.db.session import session_scope
from onboarding.common.error_handling import ValidationError

USER = "candidate-1"


def new_attempt(test_id):
    return Attempt(user_id=USER, test_id=test_id, status="in_progress", started_at=START)


@pytest.mark.asyncio
async def test_error_after_savepoint_insert_rolls_back_attempt(session_factory, sequence):
    test_id = sequence[0]["test_id"]

    with pytest.raises(ValidationError):
        async with session_scope(session_factory) as session:
            assert await AttemptRepository(session).create_in_progress(new_attempt(test_id)) is not None
            raise ValidationError("rejected after insert")

    async with session_scope(session_factory) as session:
        assert await AttemptRepository(session).find_in_progress(USER, test_id) is None


@pytest.mark.asyncio
async def test_error_after_response_insert_rolls_back_everything(session_factory, sequence):
    test_id = sequence[0]["test_id"]
    question_id = sequence[0]["questions"][1]

    async with session_scope(session_factory) as session:
        attempt = await AttemptRepository(session).create_in_progress(new_attempt(test_id))
    attempt_id = attempt.id

    with pytest.raises(ValidationError):
        async with session_scope(session_factory) as session:
            responses = ResponseRepository(session)
            assert await responses.insert(Response(
                attempt_id=attempt_id, question_id=question_id,
                answer_text="B", points_awarded=0, auto_scored=False,
            ))
            raise ValidationError("rejected after insert")

    async with session_scope(session_factory) as session:
        assert await ResponseRepository(session).list_for_attempt(attempt_id) == []


@pytest.mark.asyncio
async def test_duplicate_insert_only_undoes_its_savepoint(session_factory, sequence):
    test_id = sequence[0]["test_id"]

    async with session_scope(session_factory) as session:
        attempts = AttemptRepository(session)
        first = await attempts.create_in_progress(new_attempt(test_id))
        assert await attempts.create_in_progress(new_attempt(test_id)) is None

    async with session_scope(session_factory) as session:
        found = await AttemptRepository(session).find_in_progress(USER, test_id)
        assert found is not None
        assert found.id == first.id
