"""
Attempt State Machine

The only place where an attempt's status is allowed to change. Callers ask
``AttemptStateMachine.transition`` for the next status and write back what
it returns; illegal moves raise before anything is persisted.

    available --start--> in_progress --submit/timeout--> submitted
    submitted --evaluate--> evaluated --re-evaluate--> evaluated

``locked`` and ``available`` are never stored: they are computed from the
candidate's attempt at the previous test in sequence. ``graded`` is a legacy
terminal status that behaves exactly like ``evaluated``.
"""

import datetime
from typing import Dict, FrozenSet, Optional

from onboarding.assessments.models import AttemptStatus, TestAvailability
from onboarding.common.error_handling import InvalidTransitionError, PrerequisiteNotMetError
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.state_machine")

ALLOWED_TRANSITIONS: Dict[AttemptStatus, FrozenSet[AttemptStatus]] = {
    AttemptStatus.LOCKED: frozenset(),
    AttemptStatus.AVAILABLE: frozenset({AttemptStatus.IN_PROGRESS}),
    AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.SUBMITTED}),
    AttemptStatus.SUBMITTED: frozenset({AttemptStatus.EVALUATED}),
    AttemptStatus.EVALUATED: frozenset({AttemptStatus.EVALUATED}),
    AttemptStatus.GRADED: frozenset({AttemptStatus.EVALUATED}),
}


class AttemptStateMachine:
    """Transition rules and timing for test attempts."""

    transitions = ALLOWED_TRANSITIONS

    @classmethod
    def can_transition(cls, current: AttemptStatus, target: AttemptStatus) -> bool:
        return target in cls.transitions.get(current, frozenset())

    @classmethod
    def transition(
        cls,
        current: AttemptStatus,
        target: AttemptStatus,
        test_id: Optional[str] = None
    ) -> AttemptStatus:
        """
        Validate a status change.

        Args:
            current: Status the attempt is in (computed or persisted)
            target: Status the caller wants to move to
            test_id: Test the attempt belongs to, for error details

        Returns:
            The new status

        Raises:
            PrerequisiteNotMetError: Starting a test that is still locked
            InvalidTransitionError: Any other move not in the transition table
        """
        current = AttemptStatus(current)
        target = AttemptStatus(target)

        if current is AttemptStatus.LOCKED and target is AttemptStatus.IN_PROGRESS:
            raise PrerequisiteNotMetError(test_id or "")

        if not cls.can_transition(current, target):
            logger.warning(f"Rejected transition {current.value} -> {target.value}")
            raise InvalidTransitionError(current, target, details={"test_id": test_id} if test_id else None)

        return target

    @staticmethod
    def deadline(
        started_at: datetime.datetime,
        time_limit_minutes: Optional[int]
    ) -> Optional[datetime.datetime]:
        """When the attempt runs out of time, or None for untimed tests."""
        if not time_limit_minutes:
            return None
        return started_at + datetime.timedelta(minutes=time_limit_minutes)

    @classmethod
    def remaining_seconds(
        cls,
        started_at: datetime.datetime,
        time_limit_minutes: Optional[int],
        now: datetime.datetime
    ) -> Optional[int]:
        """
        Seconds left on the clock, derived from ``started_at`` on every call.

        A resumed attempt therefore continues where it left off instead of
        getting a fresh timer. Never negative; None for untimed tests.
        """
        if not time_limit_minutes:
            return None
        elapsed = int((now - started_at).total_seconds())
        return max(0, min(time_limit_minutes * 60, time_limit_minutes * 60 - elapsed))

    @classmethod
    def is_expired(
        cls,
        started_at: datetime.datetime,
        time_limit_minutes: Optional[int],
        now: datetime.datetime
    ) -> bool:
        return cls.remaining_seconds(started_at, time_limit_minutes, now) == 0

    @staticmethod
    def gate(previous_status: Optional[AttemptStatus], has_previous_test: bool) -> AttemptStatus:
        """
        Computed status of a test the candidate has not started.

        A test is locked while a previous test exists in the sequence and the
        candidate has not completed it.
        """
        if not has_previous_test:
            return AttemptStatus.AVAILABLE
        if previous_status is not None and previous_status.is_completed:
            return AttemptStatus.AVAILABLE
        return AttemptStatus.LOCKED

    @classmethod
    def availability(
        cls,
        current_status: Optional[AttemptStatus],
        previous_status: Optional[AttemptStatus],
        has_previous_test: bool
    ) -> TestAvailability:
        """What the candidate's dashboard shows for a test."""
        if current_status is not None:
            if current_status.is_completed:
                return TestAvailability.COMPLETED
            if current_status is AttemptStatus.IN_PROGRESS:
                return TestAvailability.IN_PROGRESS
        gated = cls.gate(previous_status, has_previous_test)
        return TestAvailability(gated.value)
