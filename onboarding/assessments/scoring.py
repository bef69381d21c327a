"""
Scoring rules for onboarding tests.

Pure functions: nothing here touches the database. The auto-scorer decides
objective correctness of multiple-choice answers; the aggregate helpers turn
per-response point awards into the attempt's percentage and verdict.
"""

import math
import numbers
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from onboarding.assessments.database_models import Question, Response
from onboarding.assessments.models import (
    EvaluationPartition, QuestionType, ScoreSummary, ScoredResponse
)
from onboarding.common.error_handling import ValidationError


def is_correct_choice(answer_text: Optional[str], correct_answer: Optional[str]) -> bool:
    """Trimmed, case-sensitive comparison of a chosen option with the key."""
    if not answer_text or correct_answer is None:
        return False
    return answer_text.strip() == correct_answer.strip()


def response_is_correct(response: Response, question: Question) -> Optional[bool]:
    """Objective correctness of a response, or None when only a human can tell."""
    if not question.is_mcq:
        return None
    return is_correct_choice(response.answer_text, question.correct_answer)


def auto_score(response: Response, question: Question) -> bool:
    """
    Apply the auto-scoring rule to one response in place.

    A correct multiple-choice answer earns the question's full points and is
    flagged ``auto_scored``. An incorrect one is left for an evaluator: the
    flag is cleared and the points are left as they were. Free-text answers
    are never touched.

    Returns:
        True if the response is auto-scored correct after the call
    """
    if not question.is_mcq:
        return False

    if is_correct_choice(response.answer_text, question.correct_answer):
        response.points_awarded = question.max_points
        response.auto_scored = True
        return True

    response.auto_scored = False
    return False


def clamp_points(value: Any, max_points: int) -> int:
    """
    Bring an evaluator's point award into ``[0, max_points]``.

    Out-of-range numbers are clamped; anything that is not a finite number
    is rejected.

    Raises:
        ValidationError: If the value is not a number
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError("Points must be a number", details={"value": repr(value)})
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("Points must be a finite number", details={"value": repr(value)})
    return int(min(max(0, int(value)), max(0, max_points)))


def percentage(total_points: int, max_points: int) -> int:
    """
    ``round(100 * total / max)`` with halves rounded up; 0 when ``max`` is 0.

    Integer arithmetic keeps the rounding exact.
    """
    if max_points <= 0:
        return 0
    return (200 * total_points + max_points) // (2 * max_points)


def compute_summary(
    points_by_question: Mapping[str, int],
    questions: Iterable[Question],
    passing_score: int
) -> ScoreSummary:
    """
    Aggregate score of an attempt.

    Args:
        points_by_question: Awarded points keyed by question id; questions
            without a response are simply absent and count as 0
        questions: Every question of the test
        passing_score: Percentage needed to pass

    Returns:
        ScoreSummary with total, max, percentage and verdict
    """
    questions = list(questions)
    total = sum(int(points_by_question.get(q.id, 0) or 0) for q in questions)
    maximum = sum(q.max_points for q in questions)
    score = percentage(total, maximum)
    return ScoreSummary(
        total_points=total,
        max_points=maximum,
        percentage=score,
        passed=score >= passing_score,
        passing_score=passing_score,
    )


def scored_response(response: Response, question: Question, include_key: bool = True) -> ScoredResponse:
    """Join a response with its question for evaluator views."""
    return ScoredResponse(
        response_id=response.id,
        question_id=question.id,
        question_number=question.question_number,
        question_text=question.question_text,
        question_type=QuestionType(question.question_type),
        max_points=question.max_points,
        answer_text=response.answer_text or "",
        points_awarded=response.points_awarded or 0,
        auto_scored=bool(response.auto_scored),
        is_correct=response_is_correct(response, question),
        correct_answer=question.correct_answer if include_key else None,
        reference_answer=question.reference_answer if include_key else None,
    )


def partition(responses: Sequence[ScoredResponse]) -> EvaluationPartition:
    """Split responses into needs-evaluation and auto-scored-correct."""
    result = EvaluationPartition()
    for item in responses:
        if item.needs_evaluation:
            result.needs_evaluation.append(item)
        else:
            result.auto_correct.append(item)
    return result


def short_of_max(responses: Sequence[ScoredResponse]) -> List[ScoredResponse]:
    """Responses that cost the candidate points; the re-evaluation default view."""
    return [item for item in responses if item.is_short_of_max]


def resolve_awards(
    scores: Mapping[str, Any],
    responses: Mapping[str, Response],
    questions: Mapping[str, Question]
) -> Dict[str, int]:
    """
    Validate and clamp a full set of evaluator point awards before any write.

    Responses missing from ``scores`` keep their current points.

    Raises:
        ValidationError: Unknown response id or non-numeric award
    """
    unknown = sorted(set(scores) - set(responses))
    if unknown:
        raise ValidationError(
            "Scores reference responses that do not belong to this attempt",
            details={"response_ids": unknown}
        )

    awards = {}
    for response_id, response in responses.items():
        question = questions[response.question_id]
        if response_id in scores and scores[response_id] is not None:
            awards[response_id] = clamp_points(scores[response_id], question.max_points)
        else:
            awards[response_id] = response.points_awarded or 0
    return awards
