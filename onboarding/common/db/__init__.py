"""
Database Module

Connection settings and transactional session helpers shared by the
assessment services.
"""

from onboarding.common.db.connection import get_database_settings, get_engine_kwargs
from onboarding.common.db.session import session_scope, SessionFactory

__all__ = [
    'get_database_settings',
    'get_engine_kwargs',
    'session_scope',
    'SessionFactory',
]
