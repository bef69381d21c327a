"""
Assessment Domain Models

Enumerations and plain value objects shared by the attempt lifecycle,
the scoring engine and the API layer.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class QuestionType(enum.Enum):
    """Kinds of question a test can contain."""
    MCQ = "mcq"
    FREE_TEXT = "free_text"


class AttemptStatus(enum.Enum):
    """
    Status of a candidate's attempt at a test.

    ``LOCKED`` and ``AVAILABLE`` are computed for tests the candidate has no
    attempt row for; the remaining values are persisted on the attempt.
    ``GRADED`` is a legacy terminal value that is read but never written.
    """
    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EVALUATED = "evaluated"
    GRADED = "graded"

    @property
    def is_completed(self) -> bool:
        """Whether the candidate is done with the test (it unlocks the next one)."""
        return self in COMPLETED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


COMPLETED_STATUSES = frozenset({AttemptStatus.SUBMITTED, AttemptStatus.EVALUATED, AttemptStatus.GRADED})
TERMINAL_STATUSES = frozenset({AttemptStatus.EVALUATED, AttemptStatus.GRADED})


class TestAvailability(enum.Enum):
    """What a candidate's dashboard shows for one test."""

    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SubmitReason(enum.Enum):
    """Why an attempt left the in-progress state."""
    MANUAL = "manual"
    TIMEOUT = "timeout"


class AuditAction(enum.Enum):
    """Actions recorded in the attempt audit log."""
    EVALUATE = "evaluate"
    RE_EVALUATE = "re_evaluate"
    LOCK = "lock"
    UNLOCK = "unlock"
    AUTO_SUBMIT = "auto_submit"


@dataclass
class ScoreSummary:
    """Aggregate score of an attempt, derived from its response point awards."""

    total_points: int
    max_points: int
    percentage: int
    passed: bool
    passing_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_points": self.total_points,
            "max_points": self.max_points,
            "percentage": self.percentage,
            "passed": self.passed,
            "passing_score": self.passing_score,
        }


@dataclass
class ScoredResponse:
    """A response joined with its question, as shown to an evaluator."""

    response_id: str
    question_id: str
    question_number: int
    question_text: str
    question_type: QuestionType
    max_points: int
    answer_text: str
    points_awarded: int
    auto_scored: bool
    is_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    reference_answer: Optional[str] = None

    @property
    def needs_evaluation(self) -> bool:
        """Anything not confirmed correct by the auto-scorer needs a human."""
        return not (self.auto_scored and self.is_correct)

    @property
    def is_short_of_max(self) -> bool:
        return self.points_awarded < self.max_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_id": self.response_id,
            "question_id": self.question_id,
            "question_number": self.question_number,
            "question_text": self.question_text,
            "question_type": self.question_type.value,
            "max_points": self.max_points,
            "answer_text": self.answer_text,
            "points_awarded": self.points_awarded,
            "auto_scored": self.auto_scored,
            "is_correct": self.is_correct,
            "correct_answer": self.correct_answer,
            "reference_answer": self.reference_answer,
            "needs_evaluation": self.needs_evaluation,
        }


@dataclass
class EvaluationPartition:
    """Responses split into the ones a human must grade and the auto-scored correct ones."""

    needs_evaluation: List[ScoredResponse] = field(default_factory=list)
    auto_correct: List[ScoredResponse] = field(default_factory=list)
