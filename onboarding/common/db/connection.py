"""
Database Configuration Loading

Resolves the connection URL and engine options from the application
settings. Pool options are only meaningful for server databases, so they
are left out for SQLite.
"""

from typing import Dict, Any, Optional

from onboarding.config import settings
from onboarding.common.logger import app_logger

logger = app_logger.getChild("db.config")

SUPPORTED_DB_TYPES = ("postgresql", "sqlite")


def get_database_settings(database_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the database settings dictionary.

    Args:
        database_url: Explicit URL; falls back to ``settings.DATABASE_URL``

    Returns:
        Dictionary with ``database_url``, ``db_type`` and pool settings
    """
    url = database_url or settings.DATABASE_URL
    db_type = url.split(":", 1)[0].split("+", 1)[0].lower()
    if db_type not in SUPPORTED_DB_TYPES:
        logger.error(f"Unsupported database type: {db_type}")
        raise ValueError(f"Unsupported database type: {db_type}")

    return {
        "database_url": url,
        "db_type": db_type,
        "echo": settings.SQL_ECHO,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
    }


def get_engine_kwargs(db_settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get engine keyword arguments based on database type.
    """
    kwargs: Dict[str, Any] = {"echo": db_settings.get("echo", False)}

    if db_settings["db_type"] == "postgresql":
        kwargs.update({
            "pool_size": db_settings["pool_size"],
            "max_overflow": db_settings["max_overflow"],
            "pool_timeout": db_settings["pool_timeout"],
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })

    return kwargs
