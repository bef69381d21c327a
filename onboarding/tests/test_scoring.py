"""
Tests for the scoring rules: auto-scoring, clamping and the percentage formula.
"""

import pytest

from onboarding.assessments import scoring
from onboarding.assessments.database_models import Question, Response
from onboarding.assessments.models import QuestionType
from onboarding.common.error_handling import ValidationError


def make_question(qid="q1", question_type=QuestionType.MCQ, max_points=10, correct="B", number=1):
    return Question(
        id=qid,
        test_id="t1",
        question_number=number,
        question_text="Pick one",
        question_type=question_type,
        max_points=max_points,
        options=["A", "B", "C"] if question_type is QuestionType.MCQ else None,
        correct_answer=correct if question_type is QuestionType.MCQ else None,
    )


def make_response(rid="r1", qid="q1", answer="B", points=0, auto_scored=False):
    return Response(id=rid, attempt_id="a1", question_id=qid, answer_text=answer,
                    points_awarded=points, auto_scored=auto_scored)


@pytest.mark.parametrize("answer,correct,expected", [
    ("B", "B", True),
    ("  B ", "B", True),
    ("b", "B", False),
    ("", "B", False),
    (None, "B", False),
    ("B", None, False),
])
def test_is_correct_choice(answer, correct, expected):
    assert scoring.is_correct_choice(answer, correct) is expected


def test_correct_mcq_earns_full_points():
    response = make_response(answer=" B")
    assert scoring.auto_score(response, make_question(max_points=7))
    assert response.points_awarded == 7
    assert response.auto_scored is True


def test_incorrect_mcq_left_for_evaluator():
    response = make_response(answer="A", points=3, auto_scored=True)
    assert not scoring.auto_score(response, make_question())
    assert response.points_awarded == 3
    assert response.auto_scored is False


def test_free_text_never_auto_scored():
    question = make_question(question_type=QuestionType.FREE_TEXT)
    response = make_response(answer="B", points=4)
    assert not scoring.auto_score(response, question)
    assert response.points_awarded == 4
    assert response.auto_scored is False
    assert scoring.response_is_correct(response, question) is None


@pytest.mark.parametrize("value,expected", [
    (5, 5), (-3, 0), (15, 10), (0, 0), (10, 10), (7.9, 7),
])
def test_clamp_points(value, expected):
    assert scoring.clamp_points(value, 10) == expected


@pytest.mark.parametrize("value", ["7", None, True, float("nan"), float("inf"), [1]])
def test_clamp_points_rejects_non_numbers(value):
    with pytest.raises(ValidationError):
        scoring.clamp_points(value, 10)


@pytest.mark.parametrize("total,maximum,expected", [
    (10, 20, 50),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),   # 12.5 rounds half up
    (7, 40, 18),  # 17.5 rounds half up
    (69, 100, 69),
    (0, 0, 0),
    (20, 20, 100),
])
def test_percentage(total, maximum, expected):
    assert scoring.percentage(total, maximum) == expected


def test_summary_counts_unanswered_questions_in_max():
    questions = [make_question("q1"), make_question("q2", number=2), make_question("q3", number=3)]
    summary = scoring.compute_summary({"q1": 10, "q2": 4}, questions, passing_score=70)
    assert summary.total_points == 14
    assert summary.max_points == 30
    assert summary.percentage == 47
    assert summary.passed is False


def test_summary_pass_boundary_is_inclusive():
    questions = [make_question("q1", max_points=100)]
    assert scoring.compute_summary({"q1": 70}, questions, 70).passed is True
    assert scoring.compute_summary({"q1": 69}, questions, 70).passed is False


def test_zero_max_scores_zero_and_fails_nonzero_threshold():
    questions = [make_question("q1", max_points=0)]
    summary = scoring.compute_summary({"q1": 0}, questions, passing_score=70)
    assert summary.percentage == 0
    assert summary.passed is False


def test_partition_and_short_of_max():
    questions = {
        "q1": make_question("q1", number=1),
        "q2": make_question("q2", number=2),
        "q3": make_question("q3", question_type=QuestionType.FREE_TEXT, number=3),
    }
    responses = [
        make_response("r1", "q1", "B", 10, True),
        make_response("r2", "q2", "A", 0, False),
        make_response("r3", "q3", "essay", 10, False),
    ]
    items = [scoring.scored_response(r, questions[r.question_id]) for r in responses]

    split = scoring.partition(items)
    assert [item.response_id for item in split.auto_correct] == ["r1"]
    assert [item.response_id for item in split.needs_evaluation] == ["r2", "r3"]
    assert [item.response_id for item in scoring.short_of_max(items)] == ["r2"]


def test_resolve_awards_keeps_missing_and_clamps():
    questions = {"q1": make_question("q1"), "q2": make_question("q2", number=2)}
    responses = {
        "r1": make_response("r1", "q1", points=10),
        "r2": make_response("r2", "q2", points=2),
    }
    awards = scoring.resolve_awards({"r2": 99}, responses, questions)
    assert awards == {"r1": 10, "r2": 10}


def test_resolve_awards_rejects_unknown_response():
    questions = {"q1": make_question("q1")}
    responses = {"r1": make_response("r1", "q1")}
    with pytest.raises(ValidationError) as exc_info:
        scoring.resolve_awards({"r1": 5, "elsewhere": 5}, responses, questions)
    assert exc_info.value.details["response_ids"] == ["elsewhere"]
