"""
Central API router and utilities for the onboarding assessment service.

This module provides:
- A registry of module routers mounted under the API prefix
- Common response envelope
- Exception handlers mapping domain errors to HTTP status codes
"""

import logging
from typing import Any, Dict, Optional, Type

from fastapi import APIRouter, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from onboarding.common.error_handling import (
    AttemptClosedError,
    AttemptFrozenError,
    AuthenticationError,
    ConflictError,
    DatabaseError,
    InvalidTransitionError,
    NotFoundError,
    OnboardingError,
    PrerequisiteNotMetError,
    ValidationError,
    error_response,
    log_error,
)
from onboarding.common.logger import app_logger

# Configure logging
logger = app_logger.getChild("api")

# Dictionary to track registered assessment modules
registered_modules: Dict[str, APIRouter] = {}

# Most specific class first; the first match wins
ERROR_STATUS_CODES: Dict[Type[OnboardingError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AttemptFrozenError: status.HTTP_423_LOCKED,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PrerequisiteNotMetError: status.HTTP_409_CONFLICT,
    AttemptClosedError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    DatabaseError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def register_assessment_module(name: str, router: APIRouter) -> None:
    """
    Register an assessment module router.

    Args:
        name: Name of the assessment module, used as its path segment
        router: FastAPI router for the assessment module
    """
    if name in registered_modules and registered_modules[name] is not router:
        logger.warning(f"Assessment module '{name}' already registered, overwriting")

    registered_modules[name] = router
    logger.info(f"Registered assessment module: {name} with {len(router.routes)} routes")


def create_api_router() -> APIRouter:
    """Build a router that mounts every registered module under ``/<name>``."""
    main_router = APIRouter()
    for name, router in registered_modules.items():
        main_router.include_router(router, prefix=f"/{name}", tags=[name])
    return main_router


def status_code_for(error: OnboardingError) -> int:
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Common validation error handler
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=APIResponse.error("Validation error", details=error_details, code="validation_error")
    )


async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Render a domain error with the status code of its class."""
    status_code = status_code_for(exc)
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    log_error(exc, level=level, context={"path": request.url.path}, target=logger)

    return JSONResponse(
        status_code=status_code,
        content=error_response(exc, include_details=status_code < 500)
    )


# Standard API response model
class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            message: Error message
            details: Optional error details
            code: Optional error code

        Returns:
            Response dictionary
        """
        response = {
            "status": "error",
            "message": message
        }

        if details:
            response["details"] = details

        if code:
            response["code"] = code

        return response
