"""
Question Bank

Read access to tests and their ordered questions, plus the structural checks
a question must pass before the scoring engine can rely on it.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.assessments.database_models import Question, Test, describe_question
from onboarding.assessments.models import QuestionType
from onboarding.assessments.repositories import QuestionRepository, TestRepository
from onboarding.common.error_handling import NotFoundError, ValidationError
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.question_bank")

MIN_MCQ_OPTIONS = 2


def validate_question(question: Question) -> None:
    """
    Check that a question is well formed.

    - ``max_points`` is a non-negative integer
    - multiple choice: at least two distinct options, and a correct answer
      that equals (after trimming) exactly one of them
    - free text: no options or correct answer

    Raises:
        ValidationError: Describing every problem found
    """
    errors: Dict[str, str] = {}

    if not isinstance(question.max_points, int) or isinstance(question.max_points, bool) or question.max_points < 0:
        errors["max_points"] = "must be a non-negative integer"

    try:
        question_type = QuestionType(question.question_type)
    except ValueError:
        errors["question_type"] = f"unknown question type {question.question_type!r}"
        question_type = None

    if question_type is QuestionType.MCQ:
        options = [str(option).strip() for option in (question.options or [])]
        if len(options) < MIN_MCQ_OPTIONS:
            errors["options"] = f"multiple choice needs at least {MIN_MCQ_OPTIONS} options"
        elif len(set(options)) != len(options):
            errors["options"] = "options must be distinct"
        if not question.correct_answer or not question.correct_answer.strip():
            errors["correct_answer"] = "multiple choice needs a correct answer"
        elif options and question.correct_answer.strip() not in options:
            errors["correct_answer"] = "correct answer must be one of the options"
    elif question_type is QuestionType.FREE_TEXT:
        if question.options:
            errors["options"] = "free-text questions have no options"
        if question.correct_answer:
            errors["correct_answer"] = "free-text questions are never auto-scored; use reference_answer"

    if errors:
        raise ValidationError(
            f"Question {question.question_number} is invalid",
            details={"question_id": question.id, "errors": errors}
        )


def candidate_view(question: Question) -> Dict[str, Any]:
    """A question as shown to the candidate taking the test; answer keys stay hidden."""
    return describe_question(question, include_key=False)


def is_valid_option(question: Question, answer_text: str) -> bool:
    """Whether a candidate's MCQ answer is one of the question's options."""
    chosen = answer_text.strip()
    return any(str(option).strip() == chosen for option in question.option_list)


class QuestionBank:
    """
    Tests and questions as seen by the attempt lifecycle.

    Args:
        session: Session of the calling service's transaction
    """

    def __init__(self, session: AsyncSession):
        self.tests = TestRepository(session)
        self.questions = QuestionRepository(session)

    async def get_test(self, test_id: str) -> Test:
        return await self.tests.get(test_id)

    async def list_active_tests(self) -> List[Test]:
        return await self.tests.list_active()

    async def previous_test(self, test: Test) -> Optional[Test]:
        if test.test_number <= 1:
            return None
        return await self.tests.find_previous(test)

    async def list_questions(self, test_id: str) -> List[Question]:
        """Questions of a test in candidate-facing order."""
        return await self.questions.list_for_test(test_id)

    async def question_map(self, test_id: str) -> Dict[str, Question]:
        return {question.id: question for question in await self.list_questions(test_id)}

    async def get_question(self, test_id: str, question_id: str) -> Question:
        """
        Get a question and make sure it belongs to ``test_id``.

        Raises:
            NotFoundError: Unknown question or question of another test
        """
        question = await self.questions.find(question_id)
        if question is None or question.test_id != test_id:
            raise NotFoundError("Question", question_id, details={"test_id": test_id})
        return question

    async def validate_test(self, test_id: str) -> List[Question]:
        """Validate every question of a test and return them in order."""
        questions = await self.list_questions(test_id)
        for question in questions:
            validate_question(question)
        logger.debug(f"Validated {len(questions)} questions of test {test_id}")
        return questions
