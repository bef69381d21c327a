"""
Tests for manager re-evaluation of failed attempts.
"""

import pytest
import pytest_asyncio

from conftest import free_text, mcq, seed_test
from onboarding.common.error_handling import InvalidTransitionError

USER = "candidate-1"
EVALUATOR = "evaluator-1"
MANAGER = "manager-1"


@pytest_asyncio.fixture
async def failed_attempt(services, session_factory, clock):
    """Correct MCQ plus a free-text answer graded 0/10: 50%, failed."""
    seeded = await seed_test(session_factory, 1, [mcq(1, "B"), free_text(2)], passing_score=70)
    view = await services.attempts.start_attempt(USER, seeded["test_id"])
    attempt_id = view["attempt"]["id"]
    await services.responses.save_answer(attempt_id, seeded["questions"][1], "B", USER)
    await services.responses.save_answer(attempt_id, seeded["questions"][2], "", USER)
    await services.attempts.submit_attempt(attempt_id, USER)

    opened = await services.evaluations.open_for_evaluation(attempt_id)
    ids = {item["question_number"]: item["response_id"] for item in opened["responses"]}
    clock.advance(minutes=5)
    result = await services.evaluations.save_evaluation(attempt_id, EVALUATOR, scores={ids[2]: 0})
    assert result["attempt"]["passed"] is False
    clock.advance(minutes=5)
    return {"attempt_id": attempt_id, "responses": ids}


@pytest.mark.asyncio
async def test_scenario_reevaluation_raises_score_and_keeps_history(services, failed_attempt):
    attempt_id = failed_attempt["attempt_id"]
    free_text_id = failed_attempt["responses"][2]

    opened = await services.reevaluations.open_for_reevaluation(attempt_id)
    assert [item["response_id"] for item in opened["responses"]] == [free_text_id]
    assert opened["summary"]["percentage"] == 50

    result = await services.reevaluations.save_reevaluation(
        attempt_id, MANAGER, scores={free_text_id: 8}, expected_version=opened["version"]
    )
    assert result["summary"]["total_points"] == 18
    assert result["attempt"]["score"] == 90
    assert result["attempt"]["passed"] is True
    assert result["attempt"]["status"] == "evaluated"

    history = await services.evaluations.list_evaluations(attempt_id)
    awards = [(row["evaluator_id"], row["points_awarded"])
              for row in history["evaluations"] if row["response_id"] == free_text_id]
    assert awards == [(EVALUATOR, 0), (MANAGER, 8)]

    audit = history["audit_log"][-1]
    assert audit["action"] == "re_evaluate"
    assert audit["changed_by"] == MANAGER
    assert audit["old_value"]["score"] == 50
    assert audit["new_value"] == {"status": "evaluated", "score": 90, "passed": True}


@pytest.mark.asyncio
async def test_open_can_show_every_response(services, failed_attempt):
    opened = await services.reevaluations.open_for_reevaluation(failed_attempt["attempt_id"], only_incorrect=False)
    assert len(opened["responses"]) == 2
    assert opened["only_incorrect"] is False


@pytest.mark.asyncio
async def test_missing_scores_keep_previous_points(services, failed_attempt):
    result = await services.reevaluations.save_reevaluation(failed_attempt["attempt_id"], MANAGER, scores={})
    assert result["attempt"]["score"] == 50
    assert result["attempt"]["passed"] is False


@pytest.mark.asyncio
async def test_passed_attempt_cannot_be_reevaluated(services, failed_attempt):
    attempt_id = failed_attempt["attempt_id"]
    await services.reevaluations.save_reevaluation(
        attempt_id, MANAGER, scores={failed_attempt["responses"][2]: 10}
    )

    with pytest.raises(InvalidTransitionError) as exc_info:
        await services.reevaluations.open_for_reevaluation(attempt_id)
    assert "reason" in exc_info.value.details

    with pytest.raises(InvalidTransitionError):
        await services.reevaluations.save_reevaluation(attempt_id, MANAGER, scores={})


@pytest.mark.asyncio
async def test_unevaluated_attempt_cannot_be_reevaluated(services, session_factory):
    seeded = await seed_test(session_factory, 1, [mcq(1)])
    view = await services.attempts.start_attempt(USER, seeded["test_id"])
    await services.attempts.submit_attempt(view["attempt"]["id"], USER)

    with pytest.raises(InvalidTransitionError):
        await services.reevaluations.open_for_reevaluation(view["attempt"]["id"])
