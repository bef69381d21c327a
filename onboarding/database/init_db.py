"""
Database initialization and connection management.

This module provides functions for:
1. Creating and disposing the global async engine
2. Handing out the session factory used by the assessment services
3. Creating the schema directly or through alembic migrations
"""

import os
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from onboarding.common.db.connection import get_database_settings, get_engine_kwargs
from onboarding.common.logger import app_logger
from onboarding.database.base import metadata

logger = app_logger.getChild("database.init_db")

ALEMBIC_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get the global async engine instance."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the global ``AsyncSession`` factory."""
    if _session_factory is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """Build an ``AsyncSession`` factory bound to ``engine``."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def enable_sqlite_savepoints(engine: AsyncEngine) -> AsyncEngine:
    """
    Make SQLAlchemy, not the sqlite3 driver, open SQLite transactions.

    The driver only issues BEGIN before the first INSERT/UPDATE, so a
    SAVEPOINT taken earlier would be the outermost transaction and its
    RELEASE would commit the work done so far.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(database_url: Optional[str] = None, **overrides) -> AsyncEngine:
    """
    Create an async engine for ``database_url`` (defaults to settings).

    Keyword arguments override the computed engine options, e.g. a
    ``poolclass`` for tests.
    """
    db_settings = get_database_settings(database_url)
    kwargs = get_engine_kwargs(db_settings)
    kwargs.update(overrides)
    engine = create_async_engine(db_settings["database_url"], **kwargs)
    if db_settings["db_type"] == "sqlite":
        enable_sqlite_savepoints(engine)
    return engine


async def initialize_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the async database engine and verify the connection.

    Args:
        database_url: Database connection URL (defaults to settings)

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    db_settings = get_database_settings(database_url)
    logger.info(f"Initializing {db_settings['db_type']} database")

    try:
        _engine = build_engine(database_url)
        _session_factory = create_session_factory(_engine)

        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("Database engine initialized successfully")
        return _engine

    except Exception as e:
        logger.error(f"Failed to initialize async database: {e}")
        raise


async def create_schema(engine: Optional[AsyncEngine] = None) -> None:
    """Create every table known to the ORM metadata (development and tests)."""
    # Registers the assessment tables on the shared metadata
    import onboarding.assessments.database_models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info(f"Schema ready with {len(metadata.tables)} tables")


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine closed successfully")


def get_alembic_config(database_url: Optional[str] = None) -> Config:
    """Build an alembic configuration pointing at the bundled migrations."""
    config = Config()
    config.set_main_option("script_location", ALEMBIC_DIR)
    config.set_main_option("sqlalchemy.url", get_database_settings(database_url)["database_url"])
    return config


def run_migrations(database_url: Optional[str] = None, revision: str = "head") -> None:
    """
    Upgrade the database schema to ``revision``.

    Must be called outside a running event loop; the migration environment
    drives its own async engine.
    """
    logger.info(f"Running migrations up to {revision}")
    command.upgrade(get_alembic_config(database_url), revision)
