"""
Identity dependencies for the onboarding assessment API.

Identities are issued and verified by the external identity provider;
this service only needs the opaque user id carried in the bearer token.
"""

import logging
from fastapi import Header
from typing import Optional

from onboarding.common.error_handling import AuthenticationError

logger = logging.getLogger(__name__)


async def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """
    Get the current user ID from the authorization header.

    Args:
        authorization: Authorization header value (``Bearer <user id>``)

    Returns:
        User ID string

    Raises:
        AuthenticationError: If the header is missing or malformed
    """
    if not authorization:
        raise AuthenticationError("Missing authorization header")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer" or not token.strip():
        logger.warning(f"Rejected authorization scheme: {scheme}")
        raise AuthenticationError("Invalid authentication scheme", details={"scheme": scheme})

    return token.strip()
