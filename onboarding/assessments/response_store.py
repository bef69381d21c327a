"""
Response Store

Autosave of candidate answers. One row per (attempt, question), created on
the first save and overwritten on every later one, only while the attempt is
in progress and its timer has not run out.
"""

from typing import Dict, Optional

from onboarding.assessments.attempt_service import close_attempt
from onboarding.assessments.database_models import Response
from onboarding.assessments.models import AttemptStatus, SubmitReason
from onboarding.assessments.question_bank import QuestionBank, is_valid_option
from onboarding.assessments.repositories import AttemptRepository, ResponseRepository
from onboarding.assessments.services import AssessmentService
from onboarding.assessments.state_machine import AttemptStateMachine
from onboarding.common.error_handling import AttemptClosedError, ValidationError
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.responses")

MAX_ANSWER_LENGTH = 20000


class ResponseStore(AssessmentService):
    """Idempotent per-question answer persistence."""

    async def save_answer(
        self,
        attempt_id: str,
        question_id: str,
        text: Optional[str],
        user_id: Optional[str] = None
    ) -> Dict[str, object]:
        """
        Upsert the answer to one question.

        Args:
            attempt_id: Attempt being answered
            question_id: Question of the attempt's test
            text: Answer text; empty clears the answer
            user_id: When given, must own the attempt

        Returns:
            The stored response

        Raises:
            NotFoundError: Unknown attempt, or question of another test
            AttemptClosedError: Attempt not in progress, or time is up
            AttemptFrozenError: Attempt is administratively locked
            ValidationError: MCQ answer that is not one of the options
        """
        text = text or ""
        if len(text) > MAX_ANSWER_LENGTH:
            raise ValidationError(
                f"Answer exceeds {MAX_ANSWER_LENGTH} characters",
                details={"question_id": question_id}
            )

        now = self.now()
        expired = False
        async with self.transaction("save_answer") as session:
            attempt = await self.load_attempt(session, attempt_id, user_id)
            if attempt.state is not AttemptStatus.IN_PROGRESS:
                raise AttemptClosedError(attempt_id, attempt.state)
            self.ensure_not_frozen(attempt)

            bank = QuestionBank(session)
            test = await bank.get_test(attempt.test_id)
            if AttemptStateMachine.is_expired(attempt.started_at, test.time_limit_minutes, now):
                await close_attempt(session, attempt, test, SubmitReason.TIMEOUT, now)
                expired = True
            else:
                question = await bank.get_question(attempt.test_id, question_id)
                if question.is_mcq and text.strip() and not is_valid_option(question, text):
                    raise ValidationError(
                        "Answer is not one of the question's options",
                        details={"question_id": question_id}
                    )
                await AttemptRepository(session).claim_in_progress(attempt)
                response = await self._upsert(session, attempt_id, question_id, text)
                await session.flush()
                saved = {
                    "id": response.id,
                    "attempt_id": response.attempt_id,
                    "question_id": response.question_id,
                    "answer_text": response.answer_text,
                }

        if expired:
            logger.warning(f"Answer for attempt {attempt_id} refused: time limit reached")
            raise AttemptClosedError(attempt_id, AttemptStatus.SUBMITTED, reason="time limit reached")

        logger.debug(f"Saved answer for question {question_id} of attempt {attempt_id}")
        return saved

    async def get_answers(self, attempt_id: str, user_id: Optional[str] = None) -> Dict[str, str]:
        """Saved answers of an attempt keyed by question id."""
        async with self.transaction("get_answers") as session:
            await self.load_attempt(session, attempt_id, user_id)
            responses = await ResponseRepository(session).list_for_attempt(attempt_id)
            return {response.question_id: response.answer_text or "" for response in responses}

    @staticmethod
    async def _upsert(session, attempt_id: str, question_id: str, text: str) -> Response:
        responses = ResponseRepository(session)
        response = await responses.find_for_question(attempt_id, question_id)
        if response is None:
            response = Response(
                attempt_id=attempt_id,
                question_id=question_id,
                answer_text=text,
                points_awarded=0,
                auto_scored=False,
            )
            if await responses.insert(response):
                return response
            # Lost a race with a concurrent first save of the same question
            response = await responses.find_for_question(attempt_id, question_id)

        response.answer_text = text
        return response
