"""
Database Module

Declarative base, engine lifecycle and migrations for the onboarding service.
"""

from onboarding.database.base import Base, ModelBase, metadata, new_id

__all__ = ['Base', 'ModelBase', 'metadata', 'new_id']
