"""
Assessment Services

Shared plumbing for the attempt lifecycle services and a container that
wires them to one session factory and clock.
"""

import datetime
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.assessments.database_models import Attempt
from onboarding.assessments.repositories import AttemptRepository
from onboarding.common.db.session import SessionFactory, session_scope
from onboarding.common.error_handling import AttemptFrozenError, NotFoundError

Clock = Callable[[], datetime.datetime]


class AssessmentService:
    """
    Base class for the services of the attempt lifecycle.

    Args:
        session_factory: Factory for the ``AsyncSession`` of each operation
        clock: Returns the current UTC time (naive); injectable for tests
    """

    def __init__(self, session_factory: SessionFactory, clock: Optional[Clock] = None):
        self.session_factory = session_factory
        self.clock = clock or datetime.datetime.utcnow

    def now(self) -> datetime.datetime:
        return self.clock()

    @asynccontextmanager
    async def transaction(self, label: str) -> AsyncIterator[AsyncSession]:
        """One operation, one transaction."""
        async with session_scope(self.session_factory, label=label) as session:
            yield session

    @staticmethod
    async def load_attempt(
        session: AsyncSession,
        attempt_id: str,
        user_id: Optional[str] = None
    ) -> Attempt:
        """
        Load an attempt, optionally requiring that ``user_id`` owns it.

        Another candidate's attempt is reported as not found.
        """
        attempt = await AttemptRepository(session).get(attempt_id)
        if user_id is not None and attempt.user_id != user_id:
            raise NotFoundError("Attempt", attempt_id)
        return attempt

    @staticmethod
    def ensure_not_frozen(attempt: Attempt) -> None:
        if attempt.is_locked:
            raise AttemptFrozenError(attempt.id, attempt.locked_by)


class AssessmentServices:
    """
    Every core service bound to the same session factory and clock.

    Args:
        session_factory: Factory for ``AsyncSession`` objects
        clock: Optional clock shared by all services
    """

    def __init__(self, session_factory: SessionFactory, clock: Optional[Clock] = None):
        from onboarding.assessments.attempt_service import AttemptService
        from onboarding.assessments.evaluation_service import EvaluationEngine, ReevaluationEngine
        from onboarding.assessments.response_store import ResponseStore

        self.attempts = AttemptService(session_factory, clock)
        self.responses = ResponseStore(session_factory, clock)
        self.evaluations = EvaluationEngine(session_factory, clock)
        self.reevaluations = ReevaluationEngine(session_factory, clock)
