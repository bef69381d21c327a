"""
Assessment Router

This module exports the router from the controller module.
"""

from onboarding.assessments.controller import router
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.router")
logger.debug(f"Assessment router loaded with {len(router.routes)} routes")

__all__ = ['router']
