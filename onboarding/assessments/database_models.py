"""
SQLAlchemy ORM models for onboarding tests.

This module defines the persisted entities of the attempt lifecycle:
- Test: an onboarding test with its time limit and passing threshold
- Question: one question of a test (multiple choice or free text)
- Attempt: one candidate's attempt at one test
- Response: the candidate's answer to one question within an attempt
- Evaluation: append-only record of every human point award
- AuditLog: append-only record of score changes and administrative locks
"""

import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint, text
)
from sqlalchemy.orm import validates

from onboarding.assessments.models import AttemptStatus, QuestionType
from onboarding.database.base import ModelBase, new_id

IN_PROGRESS_ONLY = text("status = 'in_progress'")


def optional_iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Test(ModelBase):
    """
    Model for onboarding tests.

    Tests are taken in ``test_number`` order; a candidate may only start
    test N once test N-1 is completed.
    """
    __tablename__ = "tests"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    test_number = Column(Integer, nullable=False, index=True)
    time_limit_minutes = Column(Integer, nullable=True)
    passing_score = Column(Integer, nullable=False, default=70)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow,
                        onupdate=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="passing_score_range"),
    )

    def __repr__(self) -> str:
        return f"<Test {self.test_number}: {self.title}>"


class Question(ModelBase):
    """
    Model for test questions.

    Multiple-choice questions carry ``options`` and a ``correct_answer`` that
    must be one of them. Free-text questions may carry a ``reference_answer``
    shown to evaluators; it never takes part in scoring.
    """
    __tablename__ = "test_questions"

    id = Column(String(36), primary_key=True, default=new_id)
    test_id = Column(String(36), ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False)
    max_points = Column(Integer, nullable=False, default=10)
    options = Column(JSON, nullable=True)
    correct_answer = Column(Text, nullable=True)
    reference_answer = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("test_id", "question_number", name="uq_test_questions_test_number"),
    )

    @validates("question_type")
    def validate_question_type(self, key, value):
        """Accept enum members or their string values"""
        return QuestionType(value).value

    @property
    def type(self) -> QuestionType:
        return QuestionType(self.question_type)

    @property
    def is_mcq(self) -> bool:
        return self.type is QuestionType.MCQ

    @property
    def option_list(self) -> List[str]:
        return list(self.options or [])


class Attempt(ModelBase):
    """
    Model for a candidate's attempt at a test.

    ``version`` is maintained by SQLAlchemy on every UPDATE; a write based on
    an outdated row raises ``StaleDataError`` instead of silently winning.
    At most one attempt per (candidate, test) may be in progress.
    """
    __tablename__ = "test_attempts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, index=True)
    test_id = Column(String(36), ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AttemptStatus.IN_PROGRESS.value, index=True)
    started_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    is_locked = Column(Boolean, nullable=False, default=False)
    locked_by = Column(String(255), nullable=True)
    locked_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index(
            "uq_test_attempts_one_in_progress", "user_id", "test_id",
            unique=True,
            sqlite_where=IN_PROGRESS_ONLY,
            postgresql_where=IN_PROGRESS_ONLY,
        ),
    )

    @property
    def state(self) -> AttemptStatus:
        return AttemptStatus(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "test_id": self.test_id,
            "status": self.status,
            "started_at": optional_iso(self.started_at),
            "submitted_at": optional_iso(self.submitted_at),
            "score": self.score,
            "passed": self.passed,
            "is_locked": self.is_locked,
            "locked_by": self.locked_by,
            "locked_at": optional_iso(self.locked_at),
            "version": self.version,
        }


class Response(ModelBase):
    """
    Model for a candidate's answer to one question of an attempt.

    There is exactly one row per (attempt, question); autosave updates it in
    place. ``auto_scored`` is true when the current ``points_awarded`` was
    produced by the auto-scorer rather than an evaluator.
    """
    __tablename__ = "test_responses"

    id = Column(String(36), primary_key=True, default=new_id)
    attempt_id = Column(String(36), ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(36), ForeignKey("test_questions.id", ondelete="CASCADE"), nullable=False)
    answer_text = Column(Text, nullable=False, default="")
    points_awarded = Column(Integer, nullable=False, default=0)
    auto_scored = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow,
                        onupdate=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_test_responses_attempt_question"),
    )


class Evaluation(ModelBase):
    """
    Append-only record of one evaluator's point award for one response.

    Rows are never updated or deleted; every evaluation save adds a new row
    per response, so the table is the full grading history.
    """
    __tablename__ = "evaluations"

    id = Column(String(36), primary_key=True, default=new_id)
    response_id = Column(String(36), ForeignKey("test_responses.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_id = Column(String(36), ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluator_id = Column(String(255), nullable=False)
    points_awarded = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    is_final = Column(Boolean, nullable=False, default=True)
    evaluated_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "response_id": self.response_id,
            "attempt_id": self.attempt_id,
            "evaluator_id": self.evaluator_id,
            "points_awarded": self.points_awarded,
            "feedback": self.feedback,
            "is_final": self.is_final,
            "evaluated_at": optional_iso(self.evaluated_at),
        }


class AuditLog(ModelBase):
    """
    Append-only record of attempt-level changes (score/verdict, locks, expiry).
    """
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    attempt_id = Column(String(36), ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    response_id = Column(String(36), ForeignKey("test_responses.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    changed_by = Column(String(255), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "attempt_id": self.attempt_id,
            "response_id": self.response_id,
            "action": self.action,
            "changed_by": self.changed_by,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "reason": self.reason,
            "created_at": optional_iso(self.created_at),
        }


def describe_question(question: Question, include_key: bool = False) -> Dict[str, Any]:
    """Render a question; answer keys are only included for evaluators."""
    data = {
        "id": question.id,
        "test_id": question.test_id,
        "question_number": question.question_number,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "max_points": question.max_points,
        "options": question.option_list if question.is_mcq else None,
        "image_url": question.image_url,
    }
    if include_key:
        data["correct_answer"] = question.correct_answer
        data["reference_answer"] = question.reference_answer
    return data


def describe_test(test: Test) -> Dict[str, Any]:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "test_number": test.test_number,
        "time_limit_minutes": test.time_limit_minutes,
        "passing_score": test.passing_score,
        "is_active": test.is_active,
    }