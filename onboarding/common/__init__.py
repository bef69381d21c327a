"""
Common Components

Infrastructure shared by the assessment modules:
1. Logging - Centralized logging configuration
2. Error Handling - Exception hierarchy and error rendering
3. Database - Connection settings and transactional sessions
4. Auth - Identity extraction for API requests
"""

from onboarding.common.logger import app_logger

__all__ = ['app_logger']
