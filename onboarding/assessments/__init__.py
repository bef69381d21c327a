"""
Onboarding assessment core: test attempts, autosave, scoring and evaluation.
"""

from onboarding.assessments.models import (
    AttemptStatus,
    AuditAction,
    QuestionType,
    ScoreSummary,
    SubmitReason,
    TestAvailability,
)
from onboarding.assessments.state_machine import AttemptStateMachine

__all__ = [
    "AttemptStateMachine",
    "AttemptStatus",
    "AuditAction",
    "QuestionType",
    "ScoreSummary",
    "SubmitReason",
    "TestAvailability",
]
