"""
Evaluation and Re-evaluation Engines

Human grading of submitted attempts. Opening an attempt for evaluation
applies the multiple-choice auto-scorer to anything not yet scored; saving an
evaluation overwrites every response's points, appends one audit record per
response and recomputes the attempt's score and verdict, all in a single
transaction. Re-evaluation is the same save path, restricted to failed
attempts and defaulting to the responses that cost points.
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.assessments import scoring
from onboarding.assessments.database_models import (
    Attempt, AuditLog, Evaluation, Question, Response, Test, describe_test
)
from onboarding.assessments.models import AttemptStatus, AuditAction, ScoredResponse
from onboarding.assessments.question_bank import QuestionBank
from onboarding.assessments.repositories import (
    AuditLogRepository, EvaluationRepository, ResponseRepository
)
from onboarding.assessments.services import AssessmentService
from onboarding.assessments.state_machine import AttemptStateMachine
from onboarding.common.error_handling import ConflictError, InvalidTransitionError, ValidationError
from onboarding.common.logger import LoggerAdapter, app_logger, log_execution_time

logger = app_logger.getChild("assessments.evaluation")

GRADABLE_STATUSES = frozenset({AttemptStatus.SUBMITTED, AttemptStatus.EVALUATED, AttemptStatus.GRADED})
MAX_FEEDBACK_LENGTH = 5000


class EvaluationEngine(AssessmentService):
    """Human evaluation of submitted attempts."""

    audit_action = AuditAction.EVALUATE

    async def open_for_evaluation(self, attempt_id: str) -> Dict[str, Any]:
        """
        Load an attempt for grading.

        Responses of a not-yet-evaluated attempt are auto-scored first, so an
        attempt submitted before auto-scoring existed, or with auto-scoring
        switched off, is still graded against the answer keys.

        Returns:
            Attempt, test, responses split into needs-evaluation and
            auto-scored-correct, the current score summary and the attempt
            version to send back with the save

        Raises:
            NotFoundError: Unknown attempt
            InvalidTransitionError: Attempt has not been submitted yet
        """
        async with self.transaction("open_for_evaluation") as session:
            attempt = await self.load_attempt(session, attempt_id)
            self._ensure_gradable(attempt)
            return await self._open(session, attempt)

    @log_execution_time(logger)
    async def save_evaluation(
        self,
        attempt_id: str,
        evaluator_id: str,
        scores: Mapping[str, Any],
        feedback: Optional[Mapping[str, Optional[str]]] = None,
        expected_version: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Grade every response of an attempt and record the verdict.

        Args:
            attempt_id: Attempt being graded
            evaluator_id: Identity of the evaluator
            scores: Points per response id; values are clamped to
                ``[0, max_points]``; responses left out keep their points
            feedback: Optional feedback per response id
            expected_version: Attempt version the evaluator loaded; a
                mismatch means someone else saved in between

        Returns:
            Updated attempt and score summary

        Raises:
            NotFoundError: Unknown attempt
            ValidationError: Unknown response id or non-numeric points
            InvalidTransitionError: Attempt not submitted yet
            AttemptFrozenError: Attempt is administratively locked
            ConflictError: Stale ``expected_version`` or concurrent save
        """
        return await self._save(attempt_id, evaluator_id, scores, feedback, expected_version)

    async def list_evaluations(self, attempt_id: str) -> Dict[str, Any]:
        """Complete grading history of an attempt, oldest first."""
        async with self.transaction("list_evaluations") as session:
            await self.load_attempt(session, attempt_id)
            evaluations = await EvaluationRepository(session).list_for_attempt(attempt_id)
            audit = await AuditLogRepository(session).list_for_attempt(attempt_id)
            return {
                "evaluations": [evaluation.to_dict() for evaluation in evaluations],
                "audit_log": [entry.to_dict() for entry in audit],
            }

    def _ensure_gradable(self, attempt: Attempt) -> None:
        if attempt.state not in GRADABLE_STATUSES:
            raise InvalidTransitionError(
                attempt.state, AttemptStatus.EVALUATED,
                details={"attempt_id": attempt.id}
            )

    def _ensure_allowed(self, attempt: Attempt) -> None:
        """Extra entry condition of the engine, checked inside the save transaction."""
        self._ensure_gradable(attempt)

    async def _open(
        self,
        session: AsyncSession,
        attempt: Attempt,
        only_short_of_max: bool = False
    ) -> Dict[str, Any]:
        test, questions, responses = await self._load(session, attempt)

        if attempt.state is AttemptStatus.SUBMITTED:
            for response in responses:
                scoring.auto_score(response, questions[response.question_id])
            await session.flush()

        items = self._scored(responses, questions)
        if only_short_of_max:
            items = scoring.short_of_max(items)
        split = scoring.partition(items)
        summary = scoring.compute_summary(
            {response.question_id: response.points_awarded for response in responses},
            questions.values(),
            test.passing_score
        )
        return {
            "attempt": attempt.to_dict(),
            "test": describe_test(test),
            "responses": [item.to_dict() for item in items],
            "needs_evaluation": [item.response_id for item in split.needs_evaluation],
            "auto_correct": [item.response_id for item in split.auto_correct],
            "summary": summary.to_dict(),
            "version": attempt.version,
        }

    async def _save(
        self,
        attempt_id: str,
        evaluator_id: str,
        scores: Mapping[str, Any],
        feedback: Optional[Mapping[str, Optional[str]]],
        expected_version: Optional[int]
    ) -> Dict[str, Any]:
        if not evaluator_id:
            raise ValidationError("Evaluator identity is required")
        feedback = feedback or {}
        log = LoggerAdapter(logger, {"attempt_id": attempt_id, "evaluator_id": evaluator_id})
        now = self.now()

        async with self.transaction(self.audit_action.value) as session:
            attempt = await self.load_attempt(session, attempt_id)
            if expected_version is not None and attempt.version != expected_version:
                raise ConflictError(
                    "The attempt was evaluated by someone else since it was loaded",
                    details={"expected_version": expected_version, "current_version": attempt.version}
                )
            self.ensure_not_frozen(attempt)
            self._ensure_allowed(attempt)
            target = AttemptStateMachine.transition(attempt.state, AttemptStatus.EVALUATED, attempt.test_id)

            test, questions, responses = await self._load(session, attempt)
            by_id = {response.id: response for response in responses}
            awards = scoring.resolve_awards(scores, by_id, questions)
            notes = self._resolve_feedback(feedback, by_id)

            evaluations = []
            for response_id, response in by_id.items():
                points = awards[response_id]
                if points != response.points_awarded:
                    response.auto_scored = False
                response.points_awarded = points
                evaluations.append(Evaluation(
                    response_id=response_id,
                    attempt_id=attempt.id,
                    evaluator_id=evaluator_id,
                    points_awarded=points,
                    feedback=notes.get(response_id),
                    is_final=True,
                    evaluated_at=now,
                ))
            EvaluationRepository(session).append_all(evaluations)

            summary = scoring.compute_summary(
                {response.question_id: awards[response.id] for response in responses},
                questions.values(),
                test.passing_score
            )
            old_value = {"status": attempt.status, "score": attempt.score, "passed": attempt.passed}
            attempt.status = target.value
            attempt.score = summary.percentage
            attempt.passed = summary.passed
            AuditLogRepository(session).add(AuditLog(
                attempt_id=attempt.id,
                action=self.audit_action.value,
                changed_by=evaluator_id,
                old_value=old_value,
                new_value={"status": attempt.status, "score": attempt.score, "passed": attempt.passed},
                created_at=now,
            ))
            await session.flush()

            log.info(
                f"Attempt {attempt.id} {self.audit_action.value}: "
                f"{summary.total_points}/{summary.max_points} = {summary.percentage}% "
                f"({'passed' if summary.passed else 'failed'})"
            )
            return {
                "attempt": attempt.to_dict(),
                "summary": summary.to_dict(),
                "evaluations_recorded": len(evaluations),
            }

    @staticmethod
    async def _load(session: AsyncSession, attempt: Attempt):
        bank = QuestionBank(session)
        test: Test = await bank.get_test(attempt.test_id)
        questions: Dict[str, Question] = await bank.question_map(test.id)
        responses: List[Response] = [
            response for response in await ResponseRepository(session).list_for_attempt(attempt.id)
            if response.question_id in questions
        ]
        return test, questions, responses

    @staticmethod
    def _scored(responses: List[Response], questions: Mapping[str, Question]) -> List[ScoredResponse]:
        items = [scoring.scored_response(response, questions[response.question_id]) for response in responses]
        return sorted(items, key=lambda item: item.question_number)

    @staticmethod
    def _resolve_feedback(
        feedback: Mapping[str, Optional[str]],
        responses: Mapping[str, Response]
    ) -> Dict[str, str]:
        unknown = sorted(set(feedback) - set(responses))
        if unknown:
            raise ValidationError(
                "Feedback references responses that do not belong to this attempt",
                details={"response_ids": unknown}
            )
        notes = {}
        for response_id, text in feedback.items():
            if text is None or not str(text).strip():
                continue
            text = str(text).strip()
            if len(text) > MAX_FEEDBACK_LENGTH:
                raise ValidationError(
                    f"Feedback exceeds {MAX_FEEDBACK_LENGTH} characters",
                    details={"response_id": response_id}
                )
            notes[response_id] = text
        return notes


class ReevaluationEngine(EvaluationEngine):
    """
    Manager re-evaluation of failed attempts.

    Only attempts that are evaluated and failed are eligible. The save path
    and scoring formula are exactly those of ``EvaluationEngine``.
    """

    audit_action = AuditAction.RE_EVALUATE

    async def open_for_reevaluation(self, attempt_id: str, only_incorrect: bool = True) -> Dict[str, Any]:
        """
        Load a failed attempt for re-evaluation.

        Args:
            attempt_id: Attempt to review
            only_incorrect: Keep only responses awarded less than full points

        Raises:
            NotFoundError: Unknown attempt
            InvalidTransitionError: Attempt not evaluated, or it passed
        """
        async with self.transaction("open_for_reevaluation") as session:
            attempt = await self.load_attempt(session, attempt_id)
            self._ensure_allowed(attempt)
            view = await self._open(session, attempt, only_short_of_max=only_incorrect)
        view["only_incorrect"] = only_incorrect
        return view

    async def save_reevaluation(
        self,
        attempt_id: str,
        evaluator_id: str,
        scores: Mapping[str, Any],
        feedback: Optional[Mapping[str, Optional[str]]] = None,
        expected_version: Optional[int] = None
    ) -> Dict[str, Any]:
        """Re-grade a failed attempt; see ``EvaluationEngine.save_evaluation``."""
        return await self._save(attempt_id, evaluator_id, scores, feedback, expected_version)

    def _ensure_allowed(self, attempt: Attempt) -> None:
        if not attempt.state.is_terminal or attempt.passed is not False:
            raise InvalidTransitionError(
                attempt.state, AttemptStatus.EVALUATED,
                details={
                    "attempt_id": attempt.id,
                    "reason": "only evaluated attempts that failed can be re-evaluated",
                }
            )
