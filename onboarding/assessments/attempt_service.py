"""
Attempt Service

Creates, resumes, submits and freezes test attempts. Every status change
goes through ``AttemptStateMachine.transition``; submission also persists
the multiple-choice auto-scores so responses are consistent with the answer
keys from the moment the candidate is done.
"""

import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.assessments import scoring
from onboarding.assessments.database_models import (
    Attempt, AuditLog, Question, Response, Test, describe_test
)
from onboarding.assessments.models import AttemptStatus, AuditAction, SubmitReason
from onboarding.assessments.question_bank import QuestionBank, candidate_view
from onboarding.assessments.repositories import (
    AttemptRepository, AuditLogRepository, ResponseRepository
)
from onboarding.assessments.services import AssessmentService
from onboarding.assessments.state_machine import AttemptStateMachine
from onboarding.common.error_handling import InvalidTransitionError, ValidationError
from onboarding.common.logger import app_logger, log_execution_time
from onboarding.config import settings

logger = app_logger.getChild("assessments.attempts")

SYSTEM_ACTOR = "system"


async def close_attempt(
    session: AsyncSession,
    attempt: Attempt,
    test: Test,
    reason: SubmitReason,
    now: datetime.datetime,
    actor_id: Optional[str] = None,
    auto_score_on_submit: Optional[bool] = None
) -> Attempt:
    """
    Move an in-progress attempt to ``submitted``.

    ``submitted_at`` never lies past the deadline of a timed test, so an
    attempt closed late by the server still records when time ran out.
    """
    target = AttemptStateMachine.transition(attempt.state, AttemptStatus.SUBMITTED, attempt.test_id)

    deadline = AttemptStateMachine.deadline(attempt.started_at, test.time_limit_minutes)
    attempt.status = target.value
    attempt.submitted_at = min(now, deadline) if deadline else now

    if auto_score_on_submit is None:
        auto_score_on_submit = settings.AUTO_SCORE_ON_SUBMIT

    if auto_score_on_submit:
        questions = await QuestionBank(session).question_map(test.id)
        correct = 0
        for response in await ResponseRepository(session).list_for_attempt(attempt.id):
            question = questions.get(response.question_id)
            if question is not None and scoring.auto_score(response, question):
                correct += 1
        logger.info(f"Auto-scored attempt {attempt.id}: {correct} correct multiple-choice answers")

    if reason is SubmitReason.TIMEOUT:
        AuditLogRepository(session).add(AuditLog(
            attempt_id=attempt.id,
            action=AuditAction.AUTO_SUBMIT.value,
            changed_by=actor_id or SYSTEM_ACTOR,
            old_value={"status": AttemptStatus.IN_PROGRESS.value},
            new_value={"status": target.value, "submitted_at": attempt.submitted_at.isoformat()},
            reason="time limit reached",
            created_at=now,
        ))

    logger.info(f"Attempt {attempt.id} submitted ({reason.value})")
    return attempt


def attempt_view(
    attempt: Attempt,
    test: Test,
    questions: List[Question],
    responses: List[Response],
    now: datetime.datetime
) -> Dict[str, Any]:
    """Candidate-facing view of an attempt; answer keys are never included."""
    deadline = AttemptStateMachine.deadline(attempt.started_at, test.time_limit_minutes)
    remaining = None
    if attempt.state is AttemptStatus.IN_PROGRESS:
        remaining = AttemptStateMachine.remaining_seconds(attempt.started_at, test.time_limit_minutes, now)

    return {
        "attempt": attempt.to_dict(),
        "test": describe_test(test),
        "questions": [candidate_view(question) for question in questions],
        "answers": {response.question_id: response.answer_text or "" for response in responses},
        "remaining_seconds": remaining,
        "deadline": deadline.isoformat() if deadline else None,
    }


class AttemptService(AssessmentService):
    """Lifecycle of a candidate's attempts."""

    async def list_test_statuses(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Dashboard view: every active test with its computed availability.

        Args:
            user_id: Candidate identifier

        Returns:
            One entry per active test in sequence order
        """
        async with self.transaction("list_test_statuses") as session:
            tests = await QuestionBank(session).list_active_tests()
            latest = await AttemptRepository(session).latest_by_test(user_id)

            by_number = {test.test_number: test for test in tests}
            statuses = []
            for test in tests:
                attempt = latest.get(test.id)
                previous_test = by_number.get(test.test_number - 1)
                previous_attempt = latest.get(previous_test.id) if previous_test else None
                availability = AttemptStateMachine.availability(
                    attempt.state if attempt else None,
                    previous_attempt.state if previous_attempt else None,
                    previous_test is not None
                )
                statuses.append({
                    "test": describe_test(test),
                    "availability": availability.value,
                    "attempt": attempt.to_dict() if attempt else None,
                })
            return statuses

    @log_execution_time(logger)
    async def start_attempt(self, user_id: str, test_id: str) -> Dict[str, Any]:
        """
        Open a test for a candidate.

        Resumes the in-progress attempt if there is one (the timer keeps
        running from the original start). Otherwise the test must be active,
        not already completed by the candidate, and unlocked by completion of
        the previous test in sequence.

        Raises:
            NotFoundError: Unknown test
            ValidationError: Inactive test or test without questions
            PrerequisiteNotMetError: Previous test not completed
            InvalidTransitionError: Candidate already completed this test
        """
        now = self.now()
        async with self.transaction("start_attempt") as session:
            bank = QuestionBank(session)
            attempts = AttemptRepository(session)
            test = await bank.get_test(test_id)

            attempt = await attempts.find_in_progress(user_id, test_id)
            if attempt is not None:
                logger.info(f"Resuming attempt {attempt.id} for user {user_id}")
                return await self._view(session, attempt, test, now)

            if not test.is_active:
                raise ValidationError("Test is not active", details={"test_id": test_id})

            latest = await attempts.latest_by_test(user_id)
            prior = latest.get(test_id)
            if prior is not None and prior.state.is_completed:
                raise InvalidTransitionError(
                    prior.state, AttemptStatus.IN_PROGRESS,
                    details={"test_id": test_id, "attempt_id": prior.id}
                )

            current = AttemptStatus.AVAILABLE
            if settings.ENFORCE_TEST_SEQUENCE:
                previous_test = await bank.previous_test(test)
                previous_attempt = latest.get(previous_test.id) if previous_test else None
                current = AttemptStateMachine.gate(
                    previous_attempt.state if previous_attempt else None,
                    previous_test is not None
                )
            target = AttemptStateMachine.transition(current, AttemptStatus.IN_PROGRESS, test_id)

            questions = await bank.validate_test(test_id)
            if not questions:
                raise ValidationError("Test has no questions", details={"test_id": test_id})

            attempt = await attempts.create_in_progress(Attempt(
                user_id=user_id,
                test_id=test_id,
                status=target.value,
                started_at=now,
            ))
            if attempt is None:
                attempt = await attempts.find_in_progress(user_id, test_id)
            else:
                logger.info(f"Created attempt {attempt.id} for user {user_id} on test {test_id}")

            return await self._view(session, attempt, test, now, questions=questions)

    async def get_attempt(self, attempt_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Candidate view of an attempt with the time left on it.

        An in-progress attempt found past its deadline is submitted first.
        """
        now = self.now()
        async with self.transaction("get_attempt") as session:
            attempt = await self.load_attempt(session, attempt_id, user_id)
            test = await QuestionBank(session).get_test(attempt.test_id)
            return await self._view(session, attempt, test, now)

    @log_execution_time(logger)
    async def submit_attempt(
        self,
        attempt_id: str,
        user_id: Optional[str] = None,
        reason: SubmitReason = SubmitReason.MANUAL
    ) -> Dict[str, Any]:
        """
        Submit an attempt, by the candidate or because the timer ran out.

        Submitting an attempt that is already submitted or evaluated changes
        nothing and returns its current view.

        Raises:
            NotFoundError: Unknown attempt (or owned by someone else)
            AttemptFrozenError: Attempt is administratively locked
        """
        reason = SubmitReason(reason)
        now = self.now()
        async with self.transaction("submit_attempt") as session:
            attempt = await self.load_attempt(session, attempt_id, user_id)
            test = await QuestionBank(session).get_test(attempt.test_id)

            if attempt.state.is_completed:
                logger.info(f"Attempt {attempt_id} already {attempt.status}; submit ignored")
                return await self._view(session, attempt, test, now)

            self.ensure_not_frozen(attempt)
            await close_attempt(session, attempt, test, reason, now, actor_id=user_id)
            return await self._view(session, attempt, test, now)

    async def expire_overdue(self) -> List[str]:
        """
        Submit every in-progress attempt whose time limit has passed.

        Returns:
            IDs of the attempts that were closed
        """
        now = self.now()
        closed = []
        async with self.transaction("expire_overdue") as session:
            bank = QuestionBank(session)
            tests: Dict[str, Test] = {}
            for attempt in await AttemptRepository(session).list_in_progress():
                if attempt.test_id not in tests:
                    tests[attempt.test_id] = await bank.get_test(attempt.test_id)
                test = tests[attempt.test_id]
                if AttemptStateMachine.is_expired(attempt.started_at, test.time_limit_minutes, now):
                    await close_attempt(session, attempt, test, SubmitReason.TIMEOUT, now)
                    closed.append(attempt.id)
        if closed:
            logger.info(f"Expired {len(closed)} overdue attempts")
        return closed

    async def lock_attempt(self, attempt_id: str, actor_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        """Freeze an attempt against candidate writes and evaluation saves."""
        return await self._set_lock(attempt_id, actor_id, True, reason)

    async def unlock_attempt(self, attempt_id: str, actor_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        """Lift an administrative freeze."""
        return await self._set_lock(attempt_id, actor_id, False, reason)

    async def _set_lock(self, attempt_id: str, actor_id: str, locked: bool, reason: Optional[str]) -> Dict[str, Any]:
        now = self.now()
        async with self.transaction("lock_attempt" if locked else "unlock_attempt") as session:
            attempt = await self.load_attempt(session, attempt_id)
            if attempt.is_locked == locked:
                return attempt.to_dict()

            old_value = {"is_locked": attempt.is_locked, "locked_by": attempt.locked_by}
            attempt.is_locked = locked
            attempt.locked_by = actor_id if locked else None
            attempt.locked_at = now if locked else None
            AuditLogRepository(session).add(AuditLog(
                attempt_id=attempt.id,
                action=(AuditAction.LOCK if locked else AuditAction.UNLOCK).value,
                changed_by=actor_id,
                old_value=old_value,
                new_value={"is_locked": attempt.is_locked, "locked_by": attempt.locked_by},
                reason=reason,
                created_at=now,
            ))
            await session.flush()
            logger.info(f"Attempt {attempt_id} {'locked' if locked else 'unlocked'} by {actor_id}")
            return attempt.to_dict()

    async def _view(
        self,
        session: AsyncSession,
        attempt: Attempt,
        test: Test,
        now: datetime.datetime,
        questions: Optional[List[Question]] = None
    ) -> Dict[str, Any]:
        if attempt.state is AttemptStatus.IN_PROGRESS and AttemptStateMachine.is_expired(
                attempt.started_at, test.time_limit_minutes, now):
            await close_attempt(session, attempt, test, SubmitReason.TIMEOUT, now)

        await session.flush()
        if questions is None:
            questions = await QuestionBank(session).list_questions(test.id)
        responses = await ResponseRepository(session).list_for_attempt(attempt.id)
        return attempt_view(attempt, test, questions, responses, now)
