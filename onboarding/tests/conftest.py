"""
Shared fixtures for the onboarding assessment tests.

Every test gets its own SQLite file database built from the ORM metadata,
a controllable clock and the assessment services bound to both.
"""

import datetime
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from onboarding.assessments.database_models import Question, Test
from onboarding.assessments.models import QuestionType
from onboarding.assessments.services import AssessmentServices
from onboarding.database.init_db import build_engine, create_schema, create_session_factory

START = datetime.datetime(2026, 1, 5, 9, 0, 0)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime.datetime = START):
        self.current = now

    def __call__(self) -> datetime.datetime:
        return self.current

    def advance(self, **kwargs) -> datetime.datetime:
        self.current += datetime.timedelta(**kwargs)
        return self.current


def mcq(number: int, correct: str = "B", points: int = 10, options: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "question_number": number,
        "question_text": f"Question {number}",
        "question_type": QuestionType.MCQ.value,
        "max_points": points,
        "options": options or ["A", "B", "C", "D"],
        "correct_answer": correct,
    }


def free_text(number: int, points: int = 10, reference: Optional[str] = None) -> Dict[str, Any]:
    return {
        "question_number": number,
        "question_text": f"Explain topic {number}",
        "question_type": QuestionType.FREE_TEXT.value,
        "max_points": points,
        "reference_answer": reference,
    }


async def seed_test(
    session_factory,
    test_number: int,
    questions: List[Dict[str, Any]],
    time_limit_minutes: Optional[int] = None,
    passing_score: int = 70,
    is_active: bool = True
) -> Dict[str, Any]:
    """Insert a test with its questions; returns the test id and question ids by number."""
    async with session_factory() as session:
        async with session.begin():
            test = Test(
                title=f"Onboarding Test {test_number}",
                test_number=test_number,
                time_limit_minutes=time_limit_minutes,
                passing_score=passing_score,
                is_active=is_active,
            )
            session.add(test)
            await session.flush()
            rows = [Question(test_id=test.id, **fields) for fields in questions]
            session.add_all(rows)
            await session.flush()
            return {
                "test_id": test.id,
                "questions": {row.question_number: row.id for row in rows},
            }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'onboarding_test.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    test_engine = build_engine(database_url, poolclass=NullPool)
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def services(session_factory, clock):
    return AssessmentServices(session_factory, clock)


@pytest_asyncio.fixture
async def sequence(session_factory):
    """Three tests in sequence: MCQ only, mixed, free text only."""
    first = await seed_test(session_factory, 1, [mcq(1, "B"), mcq(2, "C")], time_limit_minutes=30)
    second = await seed_test(session_factory, 2, [mcq(1, "A"), free_text(2)], time_limit_minutes=45)
    third = await seed_test(session_factory, 3, [free_text(1), free_text(2)])
    return [first, second, third]
