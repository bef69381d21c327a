"""
Repositories for onboarding tests

Thin data-access classes over an ``AsyncSession``. They never commit: the
calling service owns the transaction (see ``session_scope``), which is what
lets an evaluation save touch many rows atomically.
"""

from typing import Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.assessments.database_models import (
    Attempt, AuditLog, Evaluation, Question, Response, Test
)
from onboarding.assessments.models import AttemptStatus
from onboarding.common.error_handling import AttemptClosedError, NotFoundError
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.repositories")

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Shared lookups for one model class.

    Args:
        session: Session the repository reads and writes through
    """

    model_class: Type[T]
    entity_type: str = "Entity"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, entity_id: str) -> Optional[T]:
        return await self.session.get(self.model_class, entity_id)

    async def get(self, entity_id: str) -> T:
        """
        Get an entity by ID.

        Raises:
            NotFoundError: If the entity doesn't exist
        """
        entity = await self.find(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_type, entity_id)
        return entity

    def add(self, entity: T) -> T:
        self.session.add(entity)
        return entity


class TestRepository(BaseRepository[Test]):
    model_class = Test
    entity_type = "Test"

    async def list_active(self) -> List[Test]:
        result = await self.session.execute(
            select(Test).where(Test.is_active.is_(True)).order_by(Test.test_number)
        )
        return list(result.scalars().all())

    async def find_previous(self, test: Test) -> Optional[Test]:
        """The active test numbered directly before ``test``, if any."""
        result = await self.session.execute(
            select(Test).where(
                Test.is_active.is_(True),
                Test.test_number == test.test_number - 1
            ).order_by(Test.created_at)
        )
        return result.scalars().first()


class QuestionRepository(BaseRepository[Question]):
    model_class = Question
    entity_type = "Question"

    async def list_for_test(self, test_id: str) -> List[Question]:
        result = await self.session.execute(
            select(Question).where(Question.test_id == test_id).order_by(Question.question_number)
        )
        return list(result.scalars().all())


class AttemptRepository(BaseRepository[Attempt]):
    model_class = Attempt
    entity_type = "Attempt"

    async def find_in_progress(self, user_id: str, test_id: str) -> Optional[Attempt]:
        result = await self.session.execute(
            select(Attempt).where(
                Attempt.user_id == user_id,
                Attempt.test_id == test_id,
                Attempt.status == AttemptStatus.IN_PROGRESS.value
            )
        )
        return result.scalars().first()

    async def list_for_user(self, user_id: str) -> List[Attempt]:
        result = await self.session.execute(
            select(Attempt).where(Attempt.user_id == user_id).order_by(Attempt.started_at)
        )
        return list(result.scalars().all())

    async def latest_by_test(self, user_id: str) -> Dict[str, Attempt]:
        """The candidate's most recent attempt per test."""
        latest: Dict[str, Attempt] = {}
        for attempt in await self.list_for_user(user_id):
            latest[attempt.test_id] = attempt
        return latest

    async def list_in_progress(self) -> List[Attempt]:
        result = await self.session.execute(
            select(Attempt).where(Attempt.status == AttemptStatus.IN_PROGRESS.value)
        )
        return list(result.scalars().all())

    async def create_in_progress(self, attempt: Attempt) -> Optional[Attempt]:
        """
        Insert a new in-progress attempt inside a savepoint.

        Returns None when the partial unique index reports that another
        request created the in-progress attempt first.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(attempt)
        except IntegrityError:
            logger.info(f"In-progress attempt for user {attempt.user_id} on test {attempt.test_id} already exists")
            return None
        return attempt

    async def claim_in_progress(self, attempt: Attempt) -> None:
        """
        Bump the version of an attempt that must still be in progress.

        Answer writes go through this so they are ordered against a
        concurrent submit: whichever transaction commits second sees the
        other's change (a closed attempt here, a stale version there).

        Raises:
            AttemptClosedError: The attempt is no longer in progress
        """
        result = await self.session.execute(
            update(Attempt)
            .where(
                Attempt.id == attempt.id,
                Attempt.status == AttemptStatus.IN_PROGRESS.value
            )
            .values(version=Attempt.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.session.execute(select(Attempt.status).where(Attempt.id == attempt.id))
            raise AttemptClosedError(attempt.id, current.scalar())
        await self.session.refresh(attempt, attribute_names=["version"])


class ResponseRepository(BaseRepository[Response]):
    model_class = Response
    entity_type = "Response"

    async def find_for_question(self, attempt_id: str, question_id: str) -> Optional[Response]:
        result = await self.session.execute(
            select(Response).where(
                Response.attempt_id == attempt_id,
                Response.question_id == question_id
            )
        )
        return result.scalars().first()

    async def list_for_attempt(self, attempt_id: str) -> List[Response]:
        result = await self.session.execute(
            select(Response).where(Response.attempt_id == attempt_id)
        )
        return list(result.scalars().all())

    async def insert(self, response: Response) -> bool:
        """
        Insert a response inside a savepoint.

        Returns False if a row for the same (attempt, question) was inserted
        concurrently; the caller then updates that row instead.
        """
        try:
            async with self.session.begin_nested():
                self.session.add(response)
        except IntegrityError:
            return False
        return True


class EvaluationRepository(BaseRepository[Evaluation]):
    model_class = Evaluation
    entity_type = "Evaluation"

    def append_all(self, evaluations: Sequence[Evaluation]) -> None:
        self.session.add_all(list(evaluations))

    async def list_for_attempt(self, attempt_id: str) -> List[Evaluation]:
        result = await self.session.execute(
            select(Evaluation)
            .where(Evaluation.attempt_id == attempt_id)
            .order_by(Evaluation.evaluated_at, Evaluation.id)
        )
        return list(result.scalars().all())


class AuditLogRepository(BaseRepository[AuditLog]):
    model_class = AuditLog
    entity_type = "AuditLog"

    async def list_for_attempt(self, attempt_id: str) -> List[AuditLog]:
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.attempt_id == attempt_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())
