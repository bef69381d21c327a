"""
Database Session Management

Every attempt, response and evaluation operation runs inside a single
``session_scope``: one transaction that commits when the block finishes
and rolls back on any error, so a multi-row write is never left half
applied.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from onboarding.common.error_handling import ConflictError, DatabaseError
from onboarding.common.logger import app_logger

logger = app_logger.getChild("db.session")

SessionFactory = Callable[[], AsyncSession]


@asynccontextmanager
async def session_scope(
    session_factory: SessionFactory,
    label: Optional[str] = None
) -> AsyncIterator[AsyncSession]:
    """
    Provide a transactional scope around a series of operations.

    Args:
        session_factory: Factory producing ``AsyncSession`` objects
        label: Operation name used in log lines

    Raises:
        ConflictError: A versioned row was modified by someone else
        DatabaseError: Any other SQLAlchemy failure
    """
    session = session_factory()
    try:
        async with session.begin():
            yield session
    except StaleDataError as e:
        logger.warning(f"Stale write rejected in {label or 'session'}: {e}")
        raise ConflictError(
            "The attempt was modified concurrently; reload and try again",
            cause=e
        )
    except IntegrityError as e:
        logger.error(f"Integrity error in {label or 'session'}: {e.orig}")
        raise DatabaseError(f"integrity violation in {label or 'session'}", cause=e)
    except SQLAlchemyError as e:
        logger.error(f"Database error in {label or 'session'}: {e}")
        raise DatabaseError(str(e), cause=e)
    finally:
        await session.close()
